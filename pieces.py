# pieces.py — tolerant board / piece parser for editor payloads
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Tuple, Optional

from models import Board, InvalidPuzzle, Piece, Shape


def _to_int(x: Any) -> Optional[int]:
    if isinstance(x, (list, tuple)):
        x = x[0] if x else None
    if x is None or isinstance(x, bool):
        return None
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return None


def _as_listish(val: Any) -> List[Any]:
    if val is None:
        return []
    if isinstance(val, (list, tuple)):
        return list(val)
    return [val]


def _first(container: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in container and container[k] not in (None, "", []):
            return container[k]
    return None


def _cells_from(raw: Any) -> Optional[List[Tuple[int, int]]]:
    """Accept ``[[dx, dy], ...]`` or ``[{"x": dx, "y": dy}, ...]``."""
    if not raw:
        return None
    out: List[Tuple[int, int]] = []
    for c in raw:
        if isinstance(c, dict):
            dx, dy = _to_int(c.get("x")), _to_int(c.get("y"))
        elif isinstance(c, (list, tuple)) and len(c) == 2:
            dx, dy = _to_int(c[0]), _to_int(c[1])
        else:
            return None
        if dx is None or dy is None:
            return None
        out.append((dx, dy))
    return out


def parse_board(payload: Dict[str, Any]) -> Tuple[Optional[Board], Optional[str]]:
    src = payload.get("board") if isinstance(payload.get("board"), dict) else payload
    w = _to_int(_first(src, "width", "w", "W", "board_width"))
    h = _to_int(_first(src, "height", "h", "H", "board_height"))
    if w is None or h is None:
        return None, "missing board width/height"
    try:
        return Board(w, h), None
    except InvalidPuzzle as e:
        return None, e.reason


def _piece_from_dict(raw: Dict[str, Any], fallback_id: int) -> Tuple[Optional[Piece], Optional[str]]:
    x = _to_int(raw.get("x"))
    y = _to_int(raw.get("y"))
    if x is None or y is None:
        return None, f"piece {fallback_id}: missing x/y"
    pid = _to_int(raw.get("id"))
    pid = fallback_id if pid is None else pid
    player = bool(raw.get("player") or raw.get("is_player") or raw.get("isPlayer"))

    cells = _cells_from(raw.get("cells"))
    try:
        if cells is not None:
            # shapes are normalised to a (0, 0) corner, so shift the anchor with them
            x += min(dx for dx, _ in cells)
            y += min(dy for _, dy in cells)
            shape = Shape.from_cells(cells)
        else:
            w = _to_int(_first(raw, "w", "width"))
            h = _to_int(_first(raw, "h", "height"))
            if w is None or h is None:
                return None, f"piece {pid}: missing width/height"
            shape = Shape.rect(w, h)
    except ValueError as e:
        return None, f"piece {pid}: {e}"
    return Piece(pid, x, y, shape, is_player=player), None


def parse_pieces(payload: Dict[str, Any]) -> Tuple[List[Piece], Optional[str]]:
    pieces: List[Piece] = []

    # --- Shape 1: explicit JSON pieces list -------------------------------
    raw_list = payload.get("pieces")
    if isinstance(raw_list, list) and raw_list and all(isinstance(p, dict) for p in raw_list):
        for i, raw in enumerate(raw_list):
            piece, err = _piece_from_dict(raw, i + 1)
            if err:
                return [], err
            pieces.append(piece)
        return pieces, None

    # --- Shape 2: parallel form arrays (rectangles only) -------------------
    for xK, yK, wK, hK in (("x[]", "y[]", "w[]", "h[]"), ("x", "y", "w", "h")):
        xL, yL = _as_listish(payload.get(xK)), _as_listish(payload.get(yK))
        wL, hL = _as_listish(payload.get(wK)), _as_listish(payload.get(hK))
        if not (xL and yL and wL and hL):
            continue
        for i, (x, y, w, h) in enumerate(zip(xL, yL, wL, hL)):
            piece, err = _piece_from_dict({"x": x, "y": y, "w": w, "h": h}, i + 1)
            if err:
                return [], err
            pieces.append(piece)
        if pieces:
            return pieces, None

    return [], "no pieces parsed from request"


def parse_puzzle(payload: Any) -> Tuple[Optional[Board], List[Piece], Optional[str]]:
    """
    Return (board, pieces, error_message_or_None).
    Accepts a JSON body or a merged form mapping (see app.py).
    """
    if not isinstance(payload, dict) or not payload:
        return None, [], "nothing parsed from request"
    board, err = parse_board(payload)
    if err:
        return None, [], err
    pieces, err = parse_pieces(payload)
    if err:
        return board, [], err
    return board, pieces, None


def pieces_to_dicts(pieces: Iterable[Piece]) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in pieces]
