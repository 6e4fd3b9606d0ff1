# solver/layout.py: force-directed 3D embedding of a state graph
"""
Spring embedding used to place states in 3D.

Every pair of states repels with an inverse-square force, every graph edge
pulls its endpoints toward the distance model's target separation, and a
weak pull toward the centroid keeps the cloud together. Forces are applied
straight to positions, scaled by a fixed damping factor; there is no
velocity term. Starting from a golden-angle spiral, the result is a pure
function of the state order, the graph and the iteration count.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from config import CFG
from models import StateKey
from solver.distance import DistanceMatrix

logger = logging.getLogger(__name__)

Position = Tuple[float, float, float]

REPULSION_STRENGTH = 8.0
ATTRACTION_STRENGTH = 0.05
DAMPING = 0.92
CENTERING = 0.01
REPULSION_FLOOR = 5.0
EPSILON = 0.1
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))

_BLOCK_ROWS = 256


def iteration_count(
    thorough: bool = False,
    *,
    base: Optional[int] = None,
    multiplier: Optional[int] = None,
    cap: Optional[int] = None,
) -> int:
    base = int(CFG.LAYOUT_BASE_ITERATIONS if base is None else base)
    multiplier = int(CFG.FORCE_ITERATIONS_MULTIPLIER if multiplier is None else multiplier)
    cap = int(CFG.MAX_FORCE_ITERATIONS_CAP if cap is None else cap)
    return max(0, min(base * (multiplier if thorough else 1), cap))


def spiral_positions(n: int) -> np.ndarray:
    """Golden-angle spiral, radius 20 → 50, z spread over [-5, 5]."""

    idx = np.arange(n, dtype=np.float64)
    t = idx / max(n - 1, 1)
    radius = 20.0 + t * 30.0
    angle = idx * GOLDEN_ANGLE
    out = np.empty((n, 3), dtype=np.float64)
    out[:, 0] = np.cos(angle) * radius
    out[:, 1] = np.sin(angle) * radius
    out[:, 2] = (t - 0.5) * 10.0
    return out


def _edge_arrays(
    states: Sequence[StateKey],
    graph: Mapping[StateKey, Iterable[StateKey]],
    distances: DistanceMatrix,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    index = {s: i for i, s in enumerate(states)}
    src: List[int] = []
    dst: List[int] = []
    rest: List[float] = []
    for a, targets in graph.items():
        i = index.get(a)
        if i is None:
            continue
        for b in targets:
            j = index.get(b)
            if j is None:
                continue
            target = distances.get(a, b)
            if target is None:
                continue
            src.append(i)
            dst.append(j)
            rest.append(target)
    return (
        np.asarray(src, dtype=np.int64),
        np.asarray(dst, dtype=np.int64),
        np.asarray(rest, dtype=np.float64),
    )


def _repulsion(pos: np.ndarray) -> np.ndarray:
    forces = np.zeros_like(pos)
    n = pos.shape[0]
    for start in range(0, n, _BLOCK_ROWS):
        stop = min(n, start + _BLOCK_ROWS)
        diff = pos[start:stop, None, :] - pos[None, :, :]
        dist = np.sqrt((diff * diff).sum(axis=2)) + EPSILON
        capped = np.maximum(dist, REPULSION_FLOOR)
        strength = REPULSION_STRENGTH / (capped * capped)
        # self-pairs have diff == 0 and contribute nothing
        forces[start:stop] = (diff / dist[:, :, None] * strength[:, :, None]).sum(axis=1)
    return forces


def _springs(pos: np.ndarray, forces: np.ndarray, src, dst, rest) -> None:
    if src.size == 0:
        return
    diff = pos[src] - pos[dst]
    actual = np.sqrt((diff * diff).sum(axis=1))
    pull = ATTRACTION_STRENGTH * (actual - rest)
    unit = diff / (actual + EPSILON)[:, None]
    np.add.at(forces, src, -unit * pull[:, None])
    np.add.at(forces, dst, unit * pull[:, None])


def force_layout(
    states: Sequence[StateKey],
    graph: Mapping[StateKey, Iterable[StateKey]],
    distances: DistanceMatrix,
    *,
    iterations: Optional[int] = None,
) -> Dict[StateKey, Position]:
    states = list(states)
    n = len(states)
    if n == 0:
        return {}
    steps = iteration_count() if iterations is None else max(0, int(iterations))

    pos = spiral_positions(n)
    src, dst, rest = _edge_arrays(states, graph, distances)

    for _ in range(steps):
        forces = _repulsion(pos)
        _springs(pos, forces, src, dst, rest)
        center = pos.mean(axis=0)
        forces -= (pos - center) * CENTERING
        pos += forces * DAMPING

    if not np.all(np.isfinite(pos)):
        raise FloatingPointError("force layout diverged")

    logger.debug("force layout: states=%d edges=%d iterations=%d", n, src.size, steps)
    return {s: (float(p[0]), float(p[1]), float(p[2])) for s, p in zip(states, pos)}


def ring_positions(ids: Sequence[str], radius: float = 40.0) -> Dict[str, Position]:
    """Overview placement for super layouts: one ring, alternating depth."""

    count = len(ids)
    if count == 0:
        return {}
    step = (math.pi * 2) / count
    out: Dict[str, Position] = {}
    for i, ident in enumerate(ids):
        angle = i * step
        out[ident] = (
            math.cos(angle) * radius,
            math.sin(angle) * radius,
            float((i % 2) * 20 - 10),
        )
    return out


__all__ = ["Position", "iteration_count", "spiral_positions", "force_layout", "ring_positions"]
