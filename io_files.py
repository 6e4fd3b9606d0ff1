"""Helpers for writing state-space outputs to disk."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Sequence

from config import CFG
from models import Board, StateKey
from solver.codec import render_text


def _resolve_output_path(base_dir: str, configured_name: str, fallback: str) -> str:
    """Return the absolute path where an output artifact should be written."""

    name = (configured_name or "").strip() or fallback
    if os.path.isabs(name):
        return name
    return os.path.join(base_dir, name)


def write_state_space_json(payload: Dict[str, Any], base_dir: str) -> str:
    """Write a session snapshot (states, edges, positions) to the configured JSON file."""

    path = _resolve_output_path(base_dir, CFG.EXPORT_JSON, "state_space.json")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=1)
    return path


def write_boards_text(board: Board, states: Sequence[StateKey], base_dir: str) -> str:
    """Write every state as a small text picture, separated by blank lines."""

    path = _resolve_output_path(base_dir, CFG.BOARDS_TXT, "boards.txt")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        if not states:
            f.write("No states\n")
        else:
            f.write(f"{len(states)} states on {board.width}×{board.height}\n\n")
            for i, key in enumerate(states):
                f.write(f"#{i} {key}\n")
                f.write(render_text(board, key))
                f.write("\n\n")
    return path


__all__ = ["write_state_space_json", "write_boards_text"]
