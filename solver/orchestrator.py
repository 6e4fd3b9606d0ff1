# Orchestrator: one board + piece snapshot, every level derived lazily
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from config import CFG
from models import Board, Configuration, InvalidPuzzle, Piece, StateKey, snapshot
from progress import _set_progress, log_attempt_detail
from solver.aggregate import Aggregation, MetaNode, aggregate
from solver.codec import decode
from solver.combinations import explore_all, unreachable_states
from solver.distance import DistanceMatrix, distance_matrix
from solver.layout import Position, force_layout, iteration_count, ring_positions
from solver.levels import Level, SuperLayout, micro_level, sub_level, super_level
from solver.search import SearchResult, explore


class StateSpaceSession:
    """Owns the derived state spaces for one board and piece snapshot.

    Each level is built on first use and cached until the pieces, the board
    or the super-layout limit change. ``active`` names the level being
    viewed; ``current_layout`` is set while one super layout is entered.
    """

    def __init__(
        self,
        board: Board,
        pieces: Sequence[Piece],
        *,
        super_limit: Optional[int] = None,
        thorough: bool = False,
        backend: Optional[str] = None,
        isolate: Optional[bool] = None,
    ):
        self.board = board
        self._pieces: Configuration = snapshot(pieces)
        self.thorough = bool(thorough)
        if super_limit is None:
            super_limit = CFG.SUPER_LAYOUTS_LIMIT_ADVANCED if self.thorough else CFG.SUPER_LAYOUTS_LIMIT
        self.super_limit = int(super_limit)
        self.backend = backend
        self.isolate = CFG.ISOLATE_COMBINATIONS if isolate is None else bool(isolate)
        self.active: Level = Level.NORMAL
        self.current_layout: Optional[str] = None
        self._levels: Dict[Level, Any] = {}
        self._positions: Dict[Tuple[Level, Optional[str], int], Dict[StateKey, Position]] = {}
        self._last_aggregation: Optional[Aggregation] = None

    # ---------- inputs ----------

    @property
    def pieces(self) -> Configuration:
        return self._pieces

    def set_pieces(self, pieces: Sequence[Piece]) -> None:
        self._pieces = snapshot(pieces)
        self.invalidate()

    def set_board(self, board: Board) -> None:
        self.board = board
        self.invalidate()

    def set_super_limit(self, limit: int) -> None:
        self.super_limit = int(limit)
        self.invalidate()

    def invalidate(self) -> None:
        self._levels.clear()
        self._positions.clear()
        self._last_aggregation = None
        self.current_layout = None

    # ---------- building ----------

    def _build(self, level: Level):
        cached = self._levels.get(level)
        if cached is not None:
            return cached

        t0 = time.time()
        _set_progress(stage=f"search:{level.value}")
        if level is Level.NORMAL:
            built = explore(self.board, self._pieces)
        elif level is Level.SUB:
            built = sub_level(self._build(Level.NORMAL))
        elif level is Level.MICRO:
            built = micro_level(self.board, self._pieces)
        elif level is Level.SUPER:
            built = super_level(self.board, self._pieces, self.super_limit)
        elif level is Level.ALL:
            built = self._build_all()
        else:  # pragma: no cover - enum is closed
            raise InvalidPuzzle(f"Bad level: {level!r}")

        if isinstance(built, SearchResult):
            _set_progress(states_found=len(built.states), edges_found=built.edge_count())
            log_attempt_detail(
                "Level built",
                level=level.value,
                states=len(built.states),
                edges=built.edge_count(),
                seconds=f"{time.time() - t0:.2f}",
            )
        else:
            total = sum(len(s.result.states) for s in built.values())
            _set_progress(states_found=total)
            log_attempt_detail(
                "Level built",
                level=level.value,
                layouts=len(built),
                states=total,
                seconds=f"{time.time() - t0:.2f}",
            )
        self._levels[level] = built
        return built

    def _build_all(self) -> SearchResult:
        if not self.isolate:
            return explore_all(self.board, self._pieces, backend=self.backend)

        from solver.cp_isolate import run_isolated

        ok, result, reason, crash_note = run_isolated(
            Level.ALL, self.board, self._pieces,
            max_seconds=CFG.CP_MAX_SECONDS, backend=self.backend,
        )
        if crash_note:
            log_attempt_detail("Isolated search failed", level="all", note=crash_note, reason=reason)
        if not ok or result is None:
            raise InvalidPuzzle(reason or "Combinatorial search failed")
        return result

    # ---------- navigation ----------

    def view(self, level: Union[Level, str]):
        """Make ``level`` active and return its built result."""

        level = Level.parse(level)
        self.active = level
        self.current_layout = None
        _set_progress(level=level, layout="")
        return self._build(level)

    def super_layouts(self) -> Dict[str, SuperLayout]:
        return self._build(Level.SUPER)

    def enter_layout(self, layout_id: str) -> SearchResult:
        layouts = self.super_layouts()
        chosen = layouts.get(layout_id)
        if chosen is None:
            raise InvalidPuzzle(f"Unknown layout: {layout_id!r}")
        self.active = Level.NORMAL
        self.current_layout = layout_id
        _set_progress(level=Level.NORMAL, layout=layout_id)
        log_attempt_detail("Layout entered", layout=layout_id, states=len(chosen.result.states))
        return chosen.result

    def back_to_layouts(self) -> Dict[str, SuperLayout]:
        self.current_layout = None
        self.active = Level.SUPER
        _set_progress(level=Level.SUPER, layout="")
        return self.super_layouts()

    def current(self) -> SearchResult:
        if self.current_layout is not None:
            return self.super_layouts()[self.current_layout].result
        if self.active is Level.SUPER:
            raise InvalidPuzzle("Super level is a layout overview; enter a layout first")
        return self._build(self.active)

    # ---------- lookups ----------

    def configuration_for(self, key: StateKey) -> Configuration:
        return decode(self.board, key)

    def states_for(self, node: Union[MetaNode, int, StateKey]) -> List[StateKey]:
        if isinstance(node, MetaNode):
            return list(node.members)
        if isinstance(node, int) and not isinstance(node, bool):
            if self._last_aggregation is None:
                raise InvalidPuzzle("No aggregation computed yet")
            return list(self._last_aggregation.node(node).members)
        return [node]

    def unreachable(self) -> List[StateKey]:
        everything = self._build(Level.ALL)
        reachable = self._build(Level.NORMAL)
        return unreachable_states(everything.states, reachable.graph, reachable.initial)

    # ---------- geometry ----------

    def distances(self) -> DistanceMatrix:
        current = self.current()
        _set_progress(stage="distances")
        return distance_matrix(self.board, current.states)

    def layout(self, thorough: Optional[bool] = None) -> Dict[StateKey, Position]:
        thorough = self.thorough if thorough is None else bool(thorough)
        if self.active is Level.SUPER and self.current_layout is None:
            return ring_positions(list(self.super_layouts().keys()))

        steps = iteration_count(thorough)
        cache_key = (self.active, self.current_layout, steps)
        cached = self._positions.get(cache_key)
        if cached is not None:
            return cached

        current = self.current()
        dm = self.distances()
        _set_progress(60, stage="layout")
        positions = force_layout(current.states, current.graph, dm, iterations=steps)
        log_attempt_detail("Layout computed", states=len(positions), iterations=steps)
        self._positions[cache_key] = positions
        return positions

    def aggregate(self, size: Optional[int] = None, thorough: Optional[bool] = None) -> Aggregation:
        size = CFG.AGGREGATE_SIZE if size is None else int(size)
        positions = self.layout(thorough)
        current = self.current()
        _set_progress(stage="aggregate")
        self._last_aggregation = aggregate(current.states, current.graph, positions, size)
        return self._last_aggregation

    # ---------- export ----------

    def snapshot(
        self,
        *,
        with_layout: bool = True,
        aggregate_size: Optional[int] = None,
        with_unreachable: bool = False,
    ) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "board": {"width": self.board.width, "height": self.board.height},
            "level": self.active.value,
            "layout_id": self.current_layout,
        }

        if self.active is Level.SUPER and self.current_layout is None:
            layouts = self.super_layouts()
            out["layouts"] = [s.summary() for s in layouts.values()]
            if with_layout:
                out["positions"] = {k: list(v) for k, v in self.layout().items()}
            return out

        current = self.current()
        out.update({
            "initial": current.initial,
            "states": list(current.states),
            "graph": {k: list(v) for k, v in current.graph.items()},
            "state_count": len(current.states),
            "edge_count": current.edge_count(),
            "meta": dict(current.meta),
        })
        if self.current_layout is not None:
            chosen = self.super_layouts()[self.current_layout]
            out["layout_pieces"] = [p.to_dict() for p in chosen.pieces]
        if with_layout:
            out["positions"] = {k: list(v) for k, v in self.layout().items()}
        if aggregate_size is not None and int(aggregate_size) > 1 and with_layout:
            agg = self.aggregate(aggregate_size)
            out["aggregate"] = {
                "size": int(aggregate_size),
                "nodes": [n.to_dict() for n in agg.nodes],
                "edges": [e.to_dict() for e in agg.edges],
            }
        if with_unreachable and self.active is Level.ALL:
            out["unreachable"] = self.unreachable()
        return out


def run_request(
    board: Board,
    pieces: Sequence[Piece],
    *,
    level: Union[Level, str] = Level.NORMAL,
    thorough: bool = False,
    aggregate_size: Optional[int] = None,
    layout_id: Optional[str] = None,
    with_unreachable: bool = False,
    session: Optional[StateSpaceSession] = None,
) -> Tuple[bool, Dict[str, Any], Optional[str], Optional[StateSpaceSession]]:
    """Build one view end to end.

    Returns ``(ok, payload, reason, session)``; a rejected request comes back
    with ``ok=False`` and the reason instead of raising.
    """
    try:
        if session is None:
            session = StateSpaceSession(board, pieces, thorough=thorough)
        session.view(level)
        if layout_id:
            session.enter_layout(layout_id)
        payload = session.snapshot(
            aggregate_size=aggregate_size,
            with_unreachable=with_unreachable,
        )
    except InvalidPuzzle as e:
        log_attempt_detail("Request rejected", reason=e.reason)
        _set_progress(message=e.reason)
        return False, {}, e.reason, session
    _set_progress(100)
    return True, payload, None, session


__all__ = ["StateSpaceSession", "run_request"]
