# solver/cp_enum.py
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from ortools.sat.python import cp_model as _cp

from models import Board, Piece, StateKey
from solver.codec import encode
from solver.placement import in_bounds

Anchor = Tuple[int, int]


def _options(board: Board, piece: Piece) -> List[Anchor]:
    out: List[Anchor] = []
    for y in range(0, board.height - piece.h + 1):
        for x in range(0, board.width - piece.w + 1):
            if in_bounds(board, piece.at(x, y)):
                out.append((x, y))
    return out


class _Collector(_cp.CpSolverSolutionCallback):
    def __init__(self, choice_vars, options):
        super().__init__()
        self._vars = choice_vars
        self._options = options
        self.solutions: List[Tuple[Anchor, ...]] = []

    def on_solution_callback(self):
        picked: List[Anchor] = []
        for i, row in enumerate(self._vars):
            for k, var in enumerate(row):
                if self.Value(var):
                    picked.append(self._options[i][k])
                    break
        self.solutions.append(tuple(picked))


def enumerate_placements_cp_sat(
    board: Board,
    pieces: Sequence[Piece],
    max_seconds: float = 30.0,
) -> Tuple[List[StateKey], bool]:
    """Return ``(keys, complete)``.

    One boolean per legal anchor per piece, exactly one anchor per piece and
    at most one piece per cell. ``complete`` is False when the time box ran
    out before the enumeration finished. Keys come back in the same order
    the backtracking enumerator produces them.
    """
    pieces = list(pieces)
    options = [_options(board, p) for p in pieces]
    if any(not opts for opts in options):
        return [], True

    m = _cp.CpModel()
    choice = [[m.NewBoolVar(f"p_{i}_{k}") for k in range(len(options[i]))] for i in range(len(pieces))]

    cover: Dict[int, List[_cp.IntVar]] = defaultdict(list)
    for i, piece in enumerate(pieces):
        m.AddExactlyOne(choice[i])
        for k, (x, y) in enumerate(options[i]):
            for px, py in piece.at(x, y).cells():
                cover[py * board.width + px].append(choice[i][k])
    for cell_vars in cover.values():
        if len(cell_vars) > 1:
            m.AddAtMostOne(cell_vars)

    solver = _cp.CpSolver()
    solver.parameters.enumerate_all_solutions = True
    solver.parameters.num_search_workers = 1
    solver.parameters.max_time_in_seconds = float(max_seconds)
    solver.parameters.log_search_progress = False

    collector = _Collector(choice, options)
    status = solver.Solve(m, collector)
    complete = status in (_cp.OPTIMAL, _cp.INFEASIBLE)

    ordered = sorted(collector.solutions, key=lambda anchors: tuple((y, x) for x, y in anchors))
    keys: List[StateKey] = []
    for anchors in ordered:
        placed = [p.at(x, y) for p, (x, y) in zip(pieces, anchors)]
        keys.append(encode(board, placed))
    return keys, complete


__all__ = ["enumerate_placements_cp_sat"]
