# solver/levels.py: alternate views of one configuration space
"""
Abstraction levels derived from a board and piece set.

* ``SUB``: every key flattened to occupied/empty, edges inherited.
* ``MICRO``: every occupied cell of the current board becomes its own 1×1
  piece and the space is searched again from scratch.
* ``SUPER``: several independent searches, each over the original pieces
  plus extra pieces dropped into free rectangles of the board.
* ``ALL``: every legal placement, reachable or not.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from models import Board, InvalidPuzzle, Piece, Shape, snapshot
from solver.codec import binary_key, label_grid
from solver.placement import is_valid_placement, occupancy
from solver.search import Graph, SearchResult, add_edge, explore

Space = Tuple[int, int, int, int]  # x, y, w, h


class Level(str, enum.Enum):
    NORMAL = "normal"
    SUB = "sub"
    MICRO = "micro"
    SUPER = "super"
    ALL = "all"

    @classmethod
    def parse(cls, value) -> "Level":
        if isinstance(value, Level):
            return value
        token = str(value or "normal").strip().lower()
        for level in cls:
            if level.value == token:
                return level
        raise InvalidPuzzle(f"Bad level: {value!r}")


@dataclass
class SuperLayout:
    id: str
    name: str
    description: str
    pieces: Tuple[Piece, ...]
    original_pieces: Tuple[Piece, ...]
    result: SearchResult = field(repr=False)

    @property
    def piece_count(self) -> int:
        return len(self.pieces)

    def summary(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "piece_count": self.piece_count,
            "state_count": len(self.result.states),
            "edge_count": self.result.edge_count(),
            "contains_original": True,
        }


# ---------------- sub ----------------

def sub_level(base: SearchResult) -> SearchResult:
    merged: Dict[str, str] = {}
    states: List[str] = []
    seen = set()
    for key in base.states:
        b = binary_key(key)
        merged[key] = b
        if b not in seen:
            seen.add(b)
            states.append(b)

    graph: Graph = {}
    for src, targets in base.graph.items():
        msrc = merged.get(src) or binary_key(src)
        graph.setdefault(msrc, [])
        for dst in targets:
            add_edge(graph, msrc, merged.get(dst) or binary_key(dst))

    return SearchResult(
        states=states,
        graph=graph,
        initial=binary_key(base.initial) if base.initial else None,
        meta={"merged_from": len(base.states)},
    )


# ---------------- micro ----------------

def micro_pieces(board: Board, pieces: Sequence[Piece]) -> List[Piece]:
    grid = label_grid(board, pieces)
    out: List[Piece] = []
    for idx, label in enumerate(grid):
        if label > 0:
            y, x = divmod(idx, board.width)
            out.append(Piece(len(out) + 1, x, y, Shape.rect(1, 1)))
    return out


def micro_level(board: Board, pieces: Sequence[Piece]) -> SearchResult:
    singles = micro_pieces(board, pieces)
    if not singles:
        raise InvalidPuzzle("Bad puzzle: no occupied squares found")
    result = explore(board, singles)
    result.meta["micro_pieces"] = len(singles)
    return result


# ---------------- super ----------------

def find_available_spaces(board: Board, pieces: Sequence[Piece]) -> List[Space]:
    """Every empty 1×1, 2×1, 1×2 and 2×2 rectangle, scanned by h, w, y, x."""

    taken = occupancy(board, pieces)
    spaces: List[Space] = []
    for h in (1, 2):
        for w in (1, 2):
            for y in range(0, board.height - h + 1):
                for x in range(0, board.width - w + 1):
                    free = all(
                        not taken[py * board.width + px]
                        for py in range(y, y + h)
                        for px in range(x, x + w)
                    )
                    if free:
                        spaces.append((x, y, w, h))
    return spaces


def _extra_shape(space: Space, layout_index: int) -> Tuple[int, int]:
    _, _, w, h = space
    if (w, h) == (1, 2):
        return 1, (2 if layout_index % 2 == 0 else 1)
    if (w, h) == (2, 1):
        return (2 if layout_index % 2 == 0 else 1), 1
    return w, h


def similar_layout(
    board: Board,
    pieces: Sequence[Piece],
    layout_index: int,
    spaces: Sequence[Space],
) -> List[Piece]:
    """Original pieces plus up to ``layout_index + 1`` extras.

    Spaces are consumed largest first; a space that collides with an extra
    already added is skipped.
    """
    out = list(pieces)
    if not spaces:
        return out

    wanted = min(layout_index + 1, len(spaces))
    next_id = max((p.id for p in out), default=0) + 1
    ordered = sorted(spaces, key=lambda s: (-(s[2] * s[3]), s[1], s[0], s[3], s[2]))

    added = 0
    for space in ordered:
        if added >= wanted:
            break
        w, h = _extra_shape(space, layout_index)
        candidate = Piece(next_id, space[0], space[1], Shape.rect(w, h))
        if not is_valid_placement(board, out, candidate):
            continue
        out.append(candidate)
        next_id += 1
        added += 1
    return out


def super_level(board: Board, pieces: Sequence[Piece], limit: int) -> Dict[str, SuperLayout]:
    base = snapshot(pieces)
    if not base:
        raise InvalidPuzzle("Bad puzzle: no pieces to build layouts from")
    if int(limit) < 1:
        raise InvalidPuzzle(f"Bad super-layout limit: {limit}")

    spaces = find_available_spaces(board, base)
    layout_count = max(1, min(len(spaces), int(limit)))

    layouts: Dict[str, SuperLayout] = {}
    for k in range(layout_count):
        layout_pieces = tuple(similar_layout(board, base, k, spaces))
        extra = len(layout_pieces) - len(base)
        layout_id = f"layout_{k}"
        layouts[layout_id] = SuperLayout(
            id=layout_id,
            name=f"Similar Layout {k + 1}",
            description=(
                f"Contains all original {len(base)} pieces plus {extra} additional pieces"
            ),
            pieces=layout_pieces,
            original_pieces=base,
            result=explore(board, layout_pieces),
        )
    return layouts


__all__ = [
    "Level", "SuperLayout", "sub_level", "micro_pieces", "micro_level",
    "find_available_spaces", "similar_layout", "super_level",
]
