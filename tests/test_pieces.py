from pieces import parse_board, parse_pieces, parse_puzzle, pieces_to_dicts


def test_parse_json_body():
    board, pieces, err = parse_puzzle({
        "board": {"width": 4, "height": 3},
        "pieces": [
            {"id": 3, "x": 0, "y": 0, "w": 2, "h": 1, "player": True},
            {"x": "2", "y": "1", "width": 1, "height": 2},
        ],
    })
    assert err is None
    assert (board.width, board.height) == (4, 3)
    assert [(p.id, p.x, p.y, p.w, p.h) for p in pieces] == [(3, 0, 0, 2, 1), (2, 2, 1, 1, 2)]
    assert pieces[0].is_player and not pieces[1].is_player


def test_parse_cells_shifts_anchor_to_shape_corner():
    pieces, err = parse_pieces({
        "pieces": [{"x": 1, "y": 0, "cells": [[1, 1], [1, 2], [2, 2]]}],
    })
    assert err is None
    (ell,) = pieces
    assert (ell.x, ell.y) == (2, 1)
    assert ell.shape.cells == ((0, 0), (0, 1), (1, 1))
    assert sorted(ell.cells()) == [(2, 1), (2, 2), (3, 2)]


def test_full_cells_collapse_to_rectangle():
    pieces, err = parse_pieces({"pieces": [{"x": 0, "y": 0, "cells": [{"x": 0, "y": 0}, {"x": 1, "y": 0}]}]})
    assert err is None
    assert pieces[0].shape.is_rect
    assert pieces_to_dicts(pieces) == [{"id": 1, "x": 0, "y": 0, "w": 2, "h": 1}]


def test_parse_form_arrays():
    board, pieces, err = parse_puzzle({
        "width": ["3"], "height": ["3"],
        "x[]": ["0", "2"], "y[]": ["0", "2"], "w[]": ["1", "1"], "h[]": ["2", "1"],
    })
    assert err is None
    assert board.size == 9
    assert [(p.id, p.x, p.y, p.w, p.h) for p in pieces] == [(1, 0, 0, 1, 2), (2, 2, 2, 1, 1)]


def test_errors_are_reported_not_raised():
    assert parse_puzzle({})[2] == "nothing parsed from request"
    assert parse_board({"board": {"width": 3}})[1] == "missing board width/height"
    assert "must be positive" in parse_board({"width": 0, "height": 3})[1]

    _, pieces, err = parse_puzzle({"board": {"width": 3, "height": 3}, "pieces": [{"x": 0}]})
    assert pieces == [] and "missing x/y" in err

    _, _, err = parse_puzzle({"board": {"width": 3, "height": 3}, "pieces": [{"x": 0, "y": 0, "w": 0, "h": 1}]})
    assert "must be positive" in err

    _, _, err = parse_puzzle({"board": {"width": 3, "height": 3}})
    assert err == "no pieces parsed from request"
