# solver/distance.py
from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np

from models import Board, StateKey
from solver.codec import decode

# Stand-in anchor for a piece missing on one side of a comparison.
SENTINEL = (-100, -100)
SCALE = 10.0
CEILING = 15.0
_BLOCK_ROWS = 64


class DistanceMatrix:
    def __init__(self, states: Sequence[StateKey], values: np.ndarray):
        self.states = list(states)
        self.index: Dict[StateKey, int] = {s: i for i, s in enumerate(self.states)}
        self.values = values

    def __len__(self) -> int:
        return len(self.states)

    def __call__(self, a: StateKey, b: StateKey) -> float:
        return float(self.values[self.index[a], self.index[b]])

    def get(self, a: StateKey, b: StateKey, default: Optional[float] = None) -> Optional[float]:
        i = self.index.get(a)
        j = self.index.get(b)
        if i is None or j is None:
            return default
        return float(self.values[i, j])


def anchor_array(board: Board, states: Sequence[StateKey]) -> np.ndarray:
    """``(n, p, 2)`` piece anchors per state, padded with :data:`SENTINEL`."""

    decoded = [decode(board, s) for s in states]
    width = max((len(c) for c in decoded), default=0)
    out = np.empty((len(decoded), width, 2), dtype=np.int64)
    out[:, :, 0] = SENTINEL[0]
    out[:, :, 1] = SENTINEL[1]
    for i, config in enumerate(decoded):
        for k, piece in enumerate(config):
            out[i, k, 0] = piece.x
            out[i, k, 1] = piece.y
    return out


def normalize(raw: np.ndarray) -> np.ndarray:
    return np.minimum(raw / SCALE, CEILING)


def distance_matrix(board: Board, states: Sequence[StateKey]) -> DistanceMatrix:
    """Summed per-piece Manhattan distance, clamped into ``[0, 15]``.

    Pieces are compared by index; a state with fewer pieces is padded with
    the sentinel anchor so the distance stays finite. O(n²·p), computed in
    row blocks to keep memory bounded.
    """
    anchors = anchor_array(board, states)
    n = anchors.shape[0]
    values = np.zeros((n, n), dtype=np.float64)
    for start in range(0, n, _BLOCK_ROWS):
        stop = min(n, start + _BLOCK_ROWS)
        block = anchors[start:stop, None, :, :] - anchors[None, :, :, :]
        raw = np.abs(block).sum(axis=(2, 3)).astype(np.float64)
        values[start:stop] = normalize(raw)
    return DistanceMatrix(states, values)


__all__ = ["SENTINEL", "DistanceMatrix", "anchor_array", "distance_matrix", "normalize"]
