# solver/combinations.py: every legal placement, not only the reachable ones
from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from config import CFG
from models import Board, Configuration, InvalidPuzzle, Piece, StateKey, snapshot
from solver.codec import decode, encode
from solver.placement import is_valid_placement, validate_configuration
from solver.search import DIRECTIONS, Graph, SearchResult, add_edge

logger = logging.getLogger(__name__)

PositionVector = Tuple[Tuple[int, int], ...]


def _anchors(board: Board, piece: Piece):
    for y in range(0, board.height - piece.h + 1):
        for x in range(0, board.width - piece.w + 1):
            yield x, y


def enumerate_placements(board: Board, pieces: Sequence[Piece]) -> List[StateKey]:
    """Depth-first backtracking over anchor positions, piece order fixed.

    The result grows exponentially with free cells; callers bound piece
    count and board size before calling.
    """
    ordered = snapshot(pieces)
    found: List[StateKey] = []
    seen: Set[StateKey] = set()
    placed: List[Piece] = []

    def _place(index: int) -> None:
        if index >= len(ordered):
            key = encode(board, placed)
            if key not in seen:
                seen.add(key)
                found.append(key)
            return
        piece = ordered[index]
        for x, y in _anchors(board, piece):
            candidate = piece.at(x, y)
            if not is_valid_placement(board, placed, candidate):
                continue
            placed.append(candidate)
            _place(index + 1)
            placed.pop()

    _place(0)
    return found


def single_move_apart(a: Sequence[Piece], b: Sequence[Piece]) -> bool:
    if len(a) != len(b):
        return False
    moved = -1
    for index, (pa, pb) in enumerate(zip(a, b)):
        if pa.x != pb.x or pa.y != pb.y:
            if moved >= 0:
                return False
            moved = index
    if moved < 0:
        return False
    dx = abs(a[moved].x - b[moved].x)
    dy = abs(a[moved].y - b[moved].y)
    return (dx == 1 and dy == 0) or (dx == 0 and dy == 1)


def _position_vector(configuration: Configuration) -> PositionVector:
    return tuple((p.x, p.y) for p in configuration)


def combination_graph(board: Board, states: Iterable[StateKey]) -> Graph:
    """Symmetric single-move relation over ``states``.

    Same relation as testing :func:`single_move_apart` on every pair, found
    through an index of per-piece anchor vectors instead of the n² scan.
    """
    by_vector: Dict[PositionVector, StateKey] = {}
    vectors: List[Tuple[StateKey, PositionVector]] = []
    for key in states:
        vec = _position_vector(decode(board, key))
        by_vector[vec] = key
        vectors.append((key, vec))

    graph: Graph = {}
    for key, vec in vectors:
        for index, (x, y) in enumerate(vec):
            for dx, dy in DIRECTIONS:
                probe = vec[:index] + ((x + dx, y + dy),) + vec[index + 1:]
                other = by_vector.get(probe)
                if other is not None:
                    add_edge(graph, key, other)
    return graph


def explore_all(
    board: Board,
    pieces: Sequence[Piece],
    *,
    backend: Optional[str] = None,
    max_seconds: Optional[float] = None,
) -> SearchResult:
    start = snapshot(pieces)
    if not start:
        raise InvalidPuzzle("Bad puzzle: no pieces to place")
    validate_configuration(board, start)

    chosen = (backend or getattr(CFG, "COMBINATION_BACKEND", "backtrack") or "backtrack").lower()
    if chosen == "cp_sat":
        from solver.cp_enum import enumerate_placements_cp_sat

        limit = float(max_seconds if max_seconds is not None else CFG.CP_MAX_SECONDS)
        states, complete = enumerate_placements_cp_sat(board, start, max_seconds=limit)
    elif chosen == "backtrack":
        states, complete = enumerate_placements(board, start), True
    else:
        raise InvalidPuzzle(f"Bad backend: {chosen!r} (expected 'backtrack' or 'cp_sat')")

    graph = combination_graph(board, states)
    logger.debug("combinations: backend=%s states=%d", chosen, len(states))
    return SearchResult(
        states=states,
        graph=graph,
        initial=encode(board, start),
        meta={"pieces": len(start), "backend": chosen, "complete": complete},
    )


def unreachable_states(
    all_states: Iterable[StateKey],
    graph: Graph,
    initial: StateKey,
) -> List[StateKey]:
    """States of ``all_states`` that BFS over ``graph`` cannot reach from ``initial``."""

    visited: Set[StateKey] = {initial}
    queue = deque([initial])
    while queue:
        current = queue.popleft()
        for nxt in graph.get(current, ()):
            if nxt not in visited:
                visited.add(nxt)
                queue.append(nxt)
    return [s for s in all_states if s not in visited]


__all__ = [
    "enumerate_placements", "single_move_apart", "combination_graph",
    "explore_all", "unreachable_states",
]
