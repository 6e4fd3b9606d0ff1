# solver/codec.py: occupancy keys for configurations
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from models import Board, Configuration, Piece, Shape, StateKey

_SYMBOLS = "123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"


def join_cells(cells: Iterable[int]) -> StateKey:
    return ",".join(str(int(v)) for v in cells)


def key_cells(key: StateKey) -> List[int]:
    try:
        return [int(tok) for tok in key.split(",")]
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Bad state key: {e}") from e


def label_grid(board: Board, configuration: Sequence[Piece]) -> List[int]:
    """Per-cell labels: 0 for empty, ``index + 1`` of the occupying piece.

    Cells falling outside the board are ignored; callers validate placements
    before encoding.
    """
    grid = [0] * board.size
    for index, piece in enumerate(configuration):
        label = index + 1
        if piece.shape.is_rect:
            for py in range(piece.y, piece.y + piece.h):
                row = py * board.width
                for px in range(piece.x, piece.x + piece.w):
                    if board.contains(px, py):
                        grid[row + px] = label
        else:
            for px, py in piece.cells():
                if board.contains(px, py):
                    grid[py * board.width + px] = label
    return grid


def encode(board: Board, configuration: Sequence[Piece]) -> StateKey:
    return join_cells(label_grid(board, configuration))


def decode(board: Board, key: StateKey) -> Configuration:
    """Rebuild pieces from a key; ids are ``label - 1`` in label order.

    A label whose cells fill their bounding box becomes a rectangle, anything
    else keeps its explicit offsets.
    """
    cells = key_cells(key)
    if len(cells) != board.size:
        raise ValueError(
            f"Bad state key: {len(cells)} cells for a {board.width}×{board.height} board"
        )

    groups: Dict[int, List[Tuple[int, int]]] = {}
    for idx, label in enumerate(cells):
        if label < 0:
            raise ValueError(f"Bad state key: negative label {label}")
        if label == 0:
            continue
        y, x = divmod(idx, board.width)
        groups.setdefault(label, []).append((x, y))

    pieces: List[Piece] = []
    for label in sorted(groups):
        pts = groups[label]
        min_x = min(x for x, _ in pts)
        min_y = min(y for _, y in pts)
        shape = Shape.from_cells((x - min_x, y - min_y) for x, y in pts)
        pieces.append(Piece(label - 1, min_x, min_y, shape))
    return tuple(pieces)


def binary_key(key: StateKey) -> StateKey:
    return ",".join("1" if int(tok) > 0 else "0" for tok in key.split(","))


def render_text(board: Board, key: StateKey) -> str:
    cells = key_cells(key)
    rows = []
    for y in range(board.height):
        row = []
        for x in range(board.width):
            label = cells[y * board.width + x]
            if label == 0:
                row.append(".")
            elif label <= len(_SYMBOLS):
                row.append(_SYMBOLS[label - 1])
            else:
                row.append("#")
        rows.append("".join(row))
    return "\n".join(rows)


__all__ = ["encode", "decode", "join_cells", "key_cells", "label_grid", "binary_key", "render_text"]
