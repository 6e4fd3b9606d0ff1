import pytest

from config import CFG
from models import Board, InvalidPuzzle, Piece, Shape
from solver.codec import decode
from solver.combinations import (
    combination_graph, enumerate_placements, explore_all, single_move_apart, unreachable_states,
)
from solver.search import explore


def _unit(pid, x, y):
    return Piece(pid, x, y, Shape.rect(1, 1))


def test_enumerate_counts_every_non_overlapping_placement():
    keys = enumerate_placements(Board(2, 2), [_unit(0, 0, 0), _unit(1, 1, 0)])
    assert len(keys) == 12
    assert len(set(keys)) == 12
    # piece 0 anchors advance row-major
    assert keys[0] == "1,2,0,0"


def test_enumerate_respects_piece_size():
    keys = enumerate_placements(Board(3, 2), [Piece(0, 0, 0, Shape.rect(2, 2))])
    assert keys == ["1,1,0,1,1,0", "0,1,1,0,1,1"]


def test_single_move_apart():
    board = Board(3, 1)
    a = decode(board, "1,2,0")
    assert single_move_apart(a, decode(board, "1,0,2"))
    assert not single_move_apart(a, decode(board, "0,1,2"))   # two pieces moved
    assert not single_move_apart(a, a)
    assert not single_move_apart(decode(board, "1,0,0"), a)  # piece counts differ


def test_combination_graph_is_symmetric():
    board = Board(3, 2)
    pieces = [Piece(0, 0, 0, Shape.rect(2, 1)), _unit(1, 2, 1)]
    states = enumerate_placements(board, pieces)
    graph = combination_graph(board, states)

    for src, targets in graph.items():
        for dst in targets:
            assert src in graph[dst]
            assert src != dst


def test_combination_graph_matches_pairwise_test():
    board = Board(3, 2)
    states = enumerate_placements(board, [_unit(0, 0, 0), _unit(1, 1, 0)])
    graph = combination_graph(board, states)
    decoded = {s: decode(board, s) for s in states}

    for a in states:
        expected = {b for b in states if single_move_apart(decoded[a], decoded[b])}
        assert set(graph.get(a, [])) == expected


def test_explore_all_contains_reachable_space():
    board = Board(3, 1)
    pieces = [_unit(0, 0, 0), _unit(1, 1, 0)]
    everything = explore_all(board, pieces, backend="backtrack")
    reachable = explore(board, pieces)

    assert len(everything.states) == 6
    assert set(reachable.states) <= set(everything.states)
    assert everything.meta["complete"] is True
    assert everything.initial == reachable.initial

    hidden = unreachable_states(everything.states, reachable.graph, reachable.initial)
    assert set(hidden) == {"2,1,0", "2,0,1", "0,2,1"}


def test_explore_all_uses_configured_backend(monkeypatch):
    monkeypatch.setattr(CFG, "COMBINATION_BACKEND", "backtrack")
    result = explore_all(Board(2, 1), [_unit(0, 0, 0)])
    assert result.meta["backend"] == "backtrack"
    assert result.states == ["1,0", "0,1"]


def test_explore_all_rejects_bad_input():
    with pytest.raises(InvalidPuzzle, match="no pieces"):
        explore_all(Board(2, 2), [])
    with pytest.raises(InvalidPuzzle, match="Bad backend"):
        explore_all(Board(2, 2), [_unit(0, 0, 0)], backend="magic")
