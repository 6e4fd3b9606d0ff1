# solver/aggregate.py: positional bucketing of laid-out states
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple

from models import StateKey
from solver.layout import Position


@dataclass
class MetaNode:
    index: int
    centroid: Position
    members: List[StateKey] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"index": self.index, "centroid": list(self.centroid), "members": list(self.members)}


@dataclass
class MetaEdge:
    a: int
    b: int
    start: Position
    end: Position

    def to_dict(self) -> Dict[str, object]:
        return {"a": self.a, "b": self.b, "start": list(self.start), "end": list(self.end)}


@dataclass
class Aggregation:
    nodes: List[MetaNode]
    edges: List[MetaEdge]
    group_of: Dict[StateKey, int]

    def node(self, index: int) -> MetaNode:
        for n in self.nodes:
            if n.index == index:
                return n
        raise KeyError(index)


def chunk_states(states: Sequence[StateKey], size: int) -> List[List[StateKey]]:
    if int(size) < 1:
        raise ValueError(f"Bad chunk size: {size}")
    size = int(size)
    return [list(states[i:i + size]) for i in range(0, len(states), size)]


def _centroid(members: Iterable[StateKey], positions: Mapping[StateKey, Position]):
    sx = sy = sz = 0.0
    count = 0
    for s in members:
        p = positions.get(s)
        if p is None:
            continue
        sx += p[0]
        sy += p[1]
        sz += p[2]
        count += 1
    if count == 0:
        return None
    return (sx / count, sy / count, sz / count)


def aggregate(
    states: Sequence[StateKey],
    graph: Mapping[StateKey, Iterable[StateKey]],
    positions: Mapping[StateKey, Position],
    size: int,
) -> Aggregation:
    """Group ``states`` in input order into chunks of ``size``.

    Each group with at least one positioned member becomes a meta node at
    its members' centroid. One edge is drawn per unordered pair of groups
    joined by any underlying edge.
    """
    groups = chunk_states(list(states), size)
    nodes: List[MetaNode] = []
    group_of: Dict[StateKey, int] = {}
    centroids: Dict[int, Position] = {}

    for gi, members in enumerate(groups):
        c = _centroid(members, positions)
        if c is None:
            continue
        for s in members:
            if s in positions:
                group_of[s] = gi
        centroids[gi] = c
        nodes.append(MetaNode(gi, c, list(members)))

    edges: List[MetaEdge] = []
    seen: Set[Tuple[int, int]] = set()
    for src, targets in graph.items():
        g1 = group_of.get(src)
        if g1 is None:
            continue
        for dst in targets:
            g2 = group_of.get(dst)
            if g2 is None or g2 == g1:
                continue
            pair = (g1, g2) if g1 < g2 else (g2, g1)
            if pair in seen:
                continue
            seen.add(pair)
            edges.append(MetaEdge(pair[0], pair[1], centroids[pair[0]], centroids[pair[1]]))

    return Aggregation(nodes=nodes, edges=edges, group_of=group_of)


__all__ = ["MetaNode", "MetaEdge", "Aggregation", "chunk_states", "aggregate"]
