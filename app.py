# app.py: JSON surface for the state-space viewer; progress no-cache
from __future__ import annotations
import os
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, request, send_from_directory, jsonify

from config import CFG
from io_files import write_boards_text, write_state_space_json
from models import Board, InvalidPuzzle, Piece, snapshot
from pieces import parse_puzzle, pieces_to_dicts
from solver.levels import Level
from solver.orchestrator import StateSpaceSession, run_request

from progress import (
    reset as progress_reset,
    as_json as progress_json,
    start_timer as progress_start,
    log_attempt_detail,
    set_status, set_level, set_progress_pct, set_done,
    _fmt_elapsed,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _resolve_output_paths(configured: str, fallback: str) -> Tuple[str, str, str]:
    name = (configured or "").strip() or fallback
    if os.path.isabs(name):
        full_path = name
    else:
        full_path = os.path.abspath(os.path.join(BASE_DIR, name))
    directory = os.path.dirname(full_path) or BASE_DIR
    filename = os.path.basename(full_path) or fallback
    return full_path, directory, filename


# one request at a time reads or replaces the live session
SESSION_LOCK = threading.Lock()
SESSION: Optional[StateSpaceSession] = None

LAST_RESULT: Dict[str, Any] = {
    "ok": False,
    "reason": "",
    "level": "",
    "layout_id": None,
    "state_count": 0,
    "edge_count": 0,
    "piece_count": 0,
    "elapsed_str": "0s",
}

app = Flask(__name__)


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


def _merge_like_mapping() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)

    for k, v in request.form.to_dict(flat=False).items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    for k, v in request.args.to_dict(flat=False).items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    return merged


def _scalar(v: Any) -> Any:
    if isinstance(v, (list, tuple)):
        return v[0] if v else None
    return v


def _flag(like: Dict[str, Any], key: str) -> bool:
    v = _scalar(like.get(key))
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return bool(v)


def _optional_int(like: Dict[str, Any], key: str) -> Optional[int]:
    v = _scalar(like.get(key))
    if v in (None, "", False):
        return None
    if v is True:
        return CFG.AGGREGATE_SIZE
    try:
        return int(float(v))
    except (TypeError, ValueError):
        raise InvalidPuzzle(f"Bad {key}: {v!r}")


def _begin_run() -> float:
    progress_reset()
    progress_start()
    set_status("Searching")
    set_progress_pct(0)
    return time.time()


def _reject(reason: str, status: int = 400):
    set_status("Error")
    set_done(False, reason=reason)
    LAST_RESULT.update({"ok": False, "reason": reason})
    return jsonify({"ok": False, "reason": reason}), status


def _check_request(board: Board, pieces: List[Piece], level: Level) -> None:
    board.check(CFG.BOARD_MIN_SIDE, CFG.BOARD_MAX_SIDE)
    if level is Level.ALL and len(pieces) > CFG.COMBINATION_MAX_PIECES:
        raise InvalidPuzzle(
            f"Too many pieces for the all-combinations view: {len(pieces)} > {CFG.COMBINATION_MAX_PIECES}"
        )


def _session_for(board: Board, pieces: List[Piece], thorough: bool) -> Optional[StateSpaceSession]:
    """Reuse the live session when nothing it derives from has changed."""
    s = SESSION
    if s is None:
        return None
    if s.board != board or s.pieces != snapshot(pieces) or s.thorough != thorough:
        return None
    return s


def _export(payload: Dict[str, Any], session: StateSpaceSession) -> Dict[str, str]:
    """Write the JSON snapshot and the text boards; failures are logged, not raised."""
    written: Dict[str, str] = {}
    try:
        written["json"] = os.path.basename(write_state_space_json(payload, BASE_DIR))
        if "states" in payload:
            written["boards"] = os.path.basename(
                write_boards_text(session.board, payload["states"], BASE_DIR)
            )
    except OSError as e:
        log_attempt_detail("Export failed", error=f"{type(e).__name__}: {e}")
    return written


def _respond(payload: Dict[str, Any], session: StateSpaceSession, t0: float):
    files = _export(payload, session)
    set_done(True)
    LAST_RESULT.update({
        "ok": True,
        "reason": "",
        "level": payload.get("level", ""),
        "layout_id": payload.get("layout_id"),
        "state_count": payload.get("state_count", 0),
        "edge_count": payload.get("edge_count", 0),
        "piece_count": len(session.pieces),
        "elapsed_str": _fmt_elapsed(time.time() - t0),
    })
    body = dict(payload)
    body["ok"] = True
    body["files"] = files
    body["pieces"] = pieces_to_dicts(session.pieces)
    return jsonify(body)


@app.route("/space", methods=["POST"])
def space():
    global SESSION

    like = _merge_like_mapping()
    with SESSION_LOCK:
        t0 = _begin_run()
        board, pieces, err = parse_puzzle(like)
        if err or board is None:
            seen_keys = ", ".join(list(like.keys())[:8]) or "none"
            return _reject(f"Bad puzzle: {err or 'nothing parsed from request'} (saw keys: {seen_keys})")

        try:
            level = Level.parse(_scalar(like.get("level")) or Level.NORMAL.value)
            thorough = _flag(like, "thorough")
            aggregate_size = _optional_int(like, "aggregate")
            _check_request(board, pieces, level)
        except InvalidPuzzle as e:
            return _reject(e.reason)

        set_level(level)
        ok, payload, reason, session = run_request(
            board,
            pieces,
            level=level,
            thorough=thorough,
            aggregate_size=aggregate_size,
            layout_id=_scalar(like.get("layout_id")) or None,
            with_unreachable=_flag(like, "unreachable"),
            session=_session_for(board, pieces, thorough),
        )
        if not ok:
            return _reject(reason or "Request failed")

        SESSION = session
        return _respond(payload, session, t0)


@app.route("/space/layout/<layout_id>", methods=["POST"])
def space_layout(layout_id: str):
    like = _merge_like_mapping()
    with SESSION_LOCK:
        if SESSION is None:
            return jsonify({"ok": False, "reason": "No state space loaded"}), 400
        t0 = _begin_run()
        try:
            SESSION.enter_layout(layout_id)
            payload = SESSION.snapshot(aggregate_size=_optional_int(like, "aggregate"))
        except InvalidPuzzle as e:
            return _reject(e.reason)
        return _respond(payload, SESSION, t0)


@app.route("/space/back", methods=["POST"])
def space_back():
    with SESSION_LOCK:
        if SESSION is None:
            return jsonify({"ok": False, "reason": "No state space loaded"}), 400
        t0 = _begin_run()
        try:
            SESSION.back_to_layouts()
            payload = SESSION.snapshot()
        except InvalidPuzzle as e:
            return _reject(e.reason)
        return _respond(payload, SESSION, t0)


@app.route("/state")
def state():
    key = _scalar(request.args.get("key")) or ""
    with SESSION_LOCK:
        if SESSION is None:
            return jsonify({"ok": False, "reason": "No state space loaded"}), 400
        try:
            configuration = SESSION.configuration_for(key)
        except ValueError as e:
            return jsonify({"ok": False, "reason": str(e)}), 400
        board = SESSION.board
    return jsonify({
        "ok": True,
        "key": key,
        "board": {"width": board.width, "height": board.height},
        "pieces": pieces_to_dicts(configuration),
    })


@app.route("/result/latest")
def result_latest():
    return jsonify(LAST_RESULT)


@app.route("/download/json")
def download_json():
    _, directory, filename = _resolve_output_paths(CFG.EXPORT_JSON, "state_space.json")
    return send_from_directory(directory, filename, as_attachment=True)


@app.route("/download/boards")
def download_boards():
    _, directory, filename = _resolve_output_paths(CFG.BOARDS_TXT, "boards.txt")
    return send_from_directory(directory, filename, as_attachment=True)


@app.route("/progress")
def progress():
    return jsonify(progress_json())


if __name__ == "__main__":
    app.run(debug=False)
