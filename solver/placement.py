# solver/placement.py: bounds / overlap checks shared by search and editing
from __future__ import annotations

from typing import List, Sequence

from models import Board, InvalidPuzzle, Piece


def in_bounds(board: Board, piece: Piece) -> bool:
    if piece.shape.is_rect:
        return (
            piece.x >= 0 and piece.y >= 0
            and piece.x + piece.w <= board.width
            and piece.y + piece.h <= board.height
        )
    return all(board.contains(px, py) for px, py in piece.cells())


def pieces_overlap(a: Piece, b: Piece) -> bool:
    if a.shape.is_rect and b.shape.is_rect:
        return not (
            a.x + a.w <= b.x or b.x + b.w <= a.x
            or a.y + a.h <= b.y or b.y + b.h <= a.y
        )
    # Pieces are small, so the full cross product is fine here.
    cells_b = list(b.cells())
    for ax, ay in a.cells():
        for bx, by in cells_b:
            if ax == bx and ay == by:
                return True
    return False


def can_place(board: Board, configuration: Sequence[Piece], index: int, x: int, y: int) -> bool:
    candidate = configuration[index].at(x, y)
    if not in_bounds(board, candidate):
        return False
    for other_index, other in enumerate(configuration):
        if other_index == index:
            continue
        if pieces_overlap(candidate, other):
            return False
    return True


def is_valid_placement(board: Board, placed: Sequence[Piece], candidate: Piece) -> bool:
    if not in_bounds(board, candidate):
        return False
    return not any(pieces_overlap(candidate, other) for other in placed)


def occupancy(board: Board, configuration: Sequence[Piece]) -> List[bool]:
    grid = [False] * board.size
    for piece in configuration:
        for px, py in piece.cells():
            if board.contains(px, py):
                grid[py * board.width + px] = True
    return grid


def validate_configuration(board: Board, configuration: Sequence[Piece]) -> None:
    """Raise :class:`InvalidPuzzle` unless every piece fits and none overlap."""

    for index, piece in enumerate(configuration):
        if not in_bounds(board, piece):
            raise InvalidPuzzle(
                f"Bad placement: piece {piece.id} at ({piece.x},{piece.y}) leaves the "
                f"{board.width}×{board.height} board"
            )
        for other in configuration[:index]:
            if pieces_overlap(piece, other):
                raise InvalidPuzzle(
                    f"Bad placement: piece {piece.id} overlaps piece {other.id}"
                )


__all__ = [
    "in_bounds", "pieces_overlap", "can_place", "is_valid_placement",
    "occupancy", "validate_configuration",
]
