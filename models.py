from __future__ import annotations

import operator
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional, Tuple

Cell = Tuple[int, int]
StateKey = str


class InvalidPuzzle(ValueError):
    """A search or placement request that cannot be honoured."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _side(value, label: str, error) -> int:
    """A strictly positive int; bools and non-integral values are refused."""
    if isinstance(value, bool):
        raise error(f"Bad {label}: {value!r}")
    try:
        n = operator.index(value)
    except TypeError:
        raise error(f"Bad {label}: {value!r} is not an integer")
    if n <= 0:
        raise error(f"Bad {label}: {n} must be positive")
    return n


@dataclass(frozen=True)
class Shape:
    w: int
    h: int
    # None means the full w × h rectangle
    cells: Optional[Tuple[Cell, ...]] = None

    def __post_init__(self):
        w, h = _side(self.w, "shape width", ValueError), _side(self.h, "shape height", ValueError)
        object.__setattr__(self, "w", w)
        object.__setattr__(self, "h", h)
        if self.cells is None:
            return
        cells = tuple((int(dx), int(dy)) for dx, dy in self.cells)
        if not cells:
            raise ValueError("Bad shape: no cells")
        if len(set(cells)) != len(cells):
            raise ValueError(f"Bad shape: duplicate offsets in {cells}")
        xs = [dx for dx, _ in cells]
        ys = [dy for _, dy in cells]
        if (min(xs), min(ys)) != (0, 0) or (max(xs), max(ys)) != (w - 1, h - 1):
            raise ValueError(f"Bad shape: offsets {cells} do not span the {w}×{h} box from (0, 0)")
        object.__setattr__(self, "cells", cells)

    @classmethod
    def rect(cls, w: int, h: int) -> "Shape":
        if int(w) <= 0 or int(h) <= 0:
            raise ValueError(f"Bad shape: {w}×{h} must be positive")
        return cls(int(w), int(h), None)

    @classmethod
    def from_cells(cls, cells: Iterable[Cell]) -> "Shape":
        pts = {(int(dx), int(dy)) for dx, dy in cells}
        if not pts:
            raise ValueError("Bad shape: no cells")
        min_x = min(x for x, _ in pts)
        min_y = min(y for _, y in pts)
        norm = sorted(((x - min_x, y - min_y) for x, y in pts), key=lambda c: (c[1], c[0]))
        w = max(x for x, _ in norm) + 1
        h = max(y for _, y in norm) + 1
        if len(norm) == w * h:
            return cls(w, h, None)
        return cls(w, h, tuple(norm))

    @property
    def is_rect(self) -> bool:
        return self.cells is None

    def offsets(self) -> Iterator[Cell]:
        if self.cells is None:
            for dy in range(self.h):
                for dx in range(self.w):
                    yield dx, dy
        else:
            yield from self.cells

    def area(self) -> int:
        return self.w * self.h if self.cells is None else len(self.cells)


@dataclass(frozen=True)
class Piece:
    id: int
    x: int
    y: int
    shape: Shape
    is_player: bool = field(default=False, compare=False)

    @property
    def w(self) -> int:
        return self.shape.w

    @property
    def h(self) -> int:
        return self.shape.h

    def cells(self) -> Iterator[Cell]:
        for dx, dy in self.shape.offsets():
            yield self.x + dx, self.y + dy

    def at(self, x: int, y: int) -> "Piece":
        return replace(self, x=int(x), y=int(y))

    def moved(self, dx: int, dy: int) -> "Piece":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def to_dict(self) -> dict:
        out = {"id": self.id, "x": self.x, "y": self.y, "w": self.w, "h": self.h}
        if not self.shape.is_rect:
            out["cells"] = [list(c) for c in self.shape.cells]
        if self.is_player:
            out["player"] = True
        return out


@dataclass(frozen=True)
class Board:
    width: int
    height: int

    def __post_init__(self):
        object.__setattr__(self, "width", _side(self.width, "board width", InvalidPuzzle))
        object.__setattr__(self, "height", _side(self.height, "board height", InvalidPuzzle))

    @property
    def size(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def check(self, min_side: int, max_side: int) -> "Board":
        for label, side in (("width", self.width), ("height", self.height)):
            if side < min_side or side > max_side:
                raise InvalidPuzzle(
                    f"Bad board: {label} {side} outside {min_side}..{max_side}"
                )
        return self


Configuration = Tuple[Piece, ...]


def snapshot(pieces: Iterable[Piece]) -> Configuration:
    return tuple(pieces)
