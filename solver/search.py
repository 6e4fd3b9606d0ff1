# solver/search.py: breadth-first reachability over single-cell moves
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence, Set

from models import Board, Configuration, InvalidPuzzle, Piece, StateKey, snapshot
from solver.codec import encode
from solver.placement import can_place, validate_configuration

# left, right, up, down
DIRECTIONS = ((-1, 0), (1, 0), (0, -1), (0, 1))

Graph = Dict[StateKey, List[StateKey]]


@dataclass
class SearchResult:
    states: List[StateKey]
    graph: Graph
    initial: Optional[StateKey] = None
    meta: Dict[str, object] = field(default_factory=dict)
    _state_set: Optional[Set[StateKey]] = field(default=None, init=False, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.states)

    def __contains__(self, key: object) -> bool:
        return key in self.state_set()

    def state_set(self) -> Set[StateKey]:
        if self._state_set is None or len(self._state_set) != len(self.states):
            self._state_set = set(self.states)
        return self._state_set

    def neighbors(self, key: StateKey) -> List[StateKey]:
        return list(self.graph.get(key, ()))

    def edge_count(self) -> int:
        return sum(len(v) for v in self.graph.values())


def add_edge(graph: Graph, src: StateKey, dst: StateKey) -> bool:
    if src == dst:
        return False
    edges = graph.setdefault(src, [])
    if dst in edges:
        return False
    edges.append(dst)
    return True


def explore(board: Board, pieces: Sequence[Piece]) -> SearchResult:
    """Enumerate every configuration reachable from ``pieces``.

    Every piece is tried in every direction from every discovered
    configuration; an edge is recorded for each legal move even when the
    target was already seen, so the graph does not depend on discovery
    order. Each distinct key is expanded once.
    """
    start: Configuration = snapshot(pieces)
    if not start:
        raise InvalidPuzzle("Bad puzzle: no pieces to move")
    validate_configuration(board, start)

    initial = encode(board, start)
    states: List[StateKey] = [initial]
    visited: Set[StateKey] = {initial}
    graph: Graph = {}
    queue: Deque[Configuration] = deque([start])
    expanded = 0

    while queue:
        current = queue.popleft()
        current_key = encode(board, current)
        expanded += 1

        for index, piece in enumerate(current):
            for dx, dy in DIRECTIONS:
                nx, ny = piece.x + dx, piece.y + dy
                if not can_place(board, current, index, nx, ny):
                    continue
                candidate = current[:index] + (piece.at(nx, ny),) + current[index + 1:]
                candidate_key = encode(board, candidate)
                add_edge(graph, current_key, candidate_key)
                if candidate_key not in visited:
                    visited.add(candidate_key)
                    states.append(candidate_key)
                    queue.append(candidate)

    return SearchResult(
        states=states,
        graph=graph,
        initial=initial,
        meta={"pieces": len(start), "expanded": expanded},
    )


__all__ = ["DIRECTIONS", "Graph", "SearchResult", "add_edge", "explore"]
