"""Run progress shared between the HTTP layer and the search.

``PROGRESS`` is the single source of truth for the UI poller. Every change
is written to a small JSON file so a second process (the isolated search
child, another worker) sees the same picture, and interesting transitions
go to ``logs/search_runs.log``.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

_HERE = Path(__file__).resolve().parent

PROGRESS_LOCK = threading.Lock()

PROGRESS: Dict[str, Any] = {
    "status": "Idle",          # Idle | Searching | Done | Error
    "level": "",               # normal | sub | micro | super | all
    "stage": "",               # search:<level> | distances | layout | aggregate
    "layout": "",              # super layout id while one is entered
    "states_found": 0,
    "edges_found": 0,
    "percent": 0.0,
    "elapsed_start": None,
    "elapsed": 0.0,
    "message": "",
    "done": False,
    "ok": None,
    "run_id": 0,
}

_IDLE = {k: v for k, v in PROGRESS.items() if k != "run_id"}

LOG_STATE: Dict[str, Any] = {"run_start": None, "stage": "", "stage_start": None, "level": ""}


# ---------- run log ----------

def _open_run_log() -> logging.Logger:
    log = logging.getLogger("search.run_log")
    if log.handlers:
        return log
    target = _HERE / "logs" / "search_runs.log"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError:
        # read-only checkout: progress still works, nothing is logged
        return log
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"))
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    log.propagate = False
    return log


RUN_LOGGER = _open_run_log()


def log_attempt_detail(event: str, **fields: Any) -> None:
    """Write ``event | key=value ...`` to the run log; empty values are dropped."""
    if not RUN_LOGGER.handlers:
        return
    parts = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None and v != "")
    if parts:
        RUN_LOGGER.info("%s | %s", event, parts)
    else:
        RUN_LOGGER.info("%s", event)


def _seconds(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{float(value):.2f}s"


# ---------- persistence ----------

STATE_FILE = Path(os.environ.get("PROGRESS_STATE_FILE") or _HERE / "logs" / "progress_state.json")
_LAST_STATE_MTIME: float = 0.0


def _save_locked() -> None:
    global _LAST_STATE_MTIME
    tmp = STATE_FILE.with_name(STATE_FILE.name + ".tmp")
    try:
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(PROGRESS, separators=(",", ":")), encoding="utf-8")
        tmp.replace(STATE_FILE)
        _LAST_STATE_MTIME = STATE_FILE.stat().st_mtime
    except (OSError, TypeError, ValueError):
        # the in-memory state stays authoritative
        pass


def _refresh_locked(force: bool = False) -> None:
    """Pull in a newer state file written by another process."""
    global _LAST_STATE_MTIME
    try:
        mtime = STATE_FILE.stat().st_mtime
        if not force and mtime <= _LAST_STATE_MTIME:
            return
        data = json.loads(STATE_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return
    if isinstance(data, dict):
        PROGRESS.update({k: data[k] for k in PROGRESS if k in data})
        _LAST_STATE_MTIME = mtime


# ---------- helpers ----------

def _fmt_elapsed(seconds: float) -> str:
    total = int(max(0.0, float(seconds)))
    m, s = divmod(total, 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    return f"{m}m {s}s" if h == 0 else f"{h}h {m}m"


def _tick_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None:
        PROGRESS["elapsed"] = time.time() - float(t0)


def _stage_changed_locked(stage: str) -> None:
    previous = LOG_STATE["stage"]
    if stage == previous:
        return
    now = time.time()
    if previous and LOG_STATE["stage_start"]:
        log_attempt_detail(
            "Stage finished",
            level=LOG_STATE["level"],
            stage=previous,
            states=PROGRESS["states_found"],
            duration=_seconds(max(0.0, now - LOG_STATE["stage_start"])),
        )
    LOG_STATE.update(stage=stage, stage_start=now)
    if stage:
        log_attempt_detail("Stage started", level=LOG_STATE["level"], stage=stage)


def _count(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _percent(value: Any) -> float:
    try:
        return max(0.0, min(100.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


def _text(value: Any) -> str:
    return "" if value is None else str(getattr(value, "value", value))


def _write(field: str, value: Any, *, tick: bool = False) -> None:
    with PROGRESS_LOCK:
        PROGRESS[field] = value
        if tick:
            _tick_locked()
        _save_locked()


# ---------- run lifecycle ----------

def reset() -> None:
    with PROGRESS_LOCK:
        run_id = _count(PROGRESS.get("run_id"))
        PROGRESS.update(_IDLE)
        PROGRESS["run_id"] = run_id + 1
        LOG_STATE.update(run_start=None, stage="", stage_start=None, level="")
        log_attempt_detail("Progress reset", run=run_id + 1)
        _save_locked()


def start_timer() -> None:
    with PROGRESS_LOCK:
        now = time.time()
        PROGRESS.update(elapsed_start=now, elapsed=0.0)
        LOG_STATE["run_start"] = now
        _save_locked()


def set_done(ok: Any = None, *, reason: Any = None) -> None:
    """Close the run: ``Done`` unless ``ok`` is falsy, ``reason`` goes to ``message``."""
    success = True if ok is None else bool(ok)
    with PROGRESS_LOCK:
        _tick_locked()
        PROGRESS.update(status="Done" if success else "Error", ok=success, percent=100.0, done=True)
        if reason is not None:
            PROGRESS["message"] = str(reason)
        _stage_changed_locked("")
        started = LOG_STATE["run_start"]
        LOG_STATE["run_start"] = None
        log_attempt_detail(
            "Run finished",
            status=PROGRESS["status"],
            level=PROGRESS["level"],
            states=PROGRESS["states_found"],
            edges=PROGRESS["edges_found"],
            duration=_seconds(time.time() - started) if started else None,
            message=PROGRESS["message"],
        )
        _save_locked()


# ---------- setters ----------

def set_status(v: Any) -> None:
    _write("status", _text(v))


def set_level(v: Any) -> None:
    level = _text(v)
    with PROGRESS_LOCK:
        if level != LOG_STATE["level"]:
            log_attempt_detail("Level selected", level=level)
        LOG_STATE["level"] = level
        PROGRESS["level"] = level
        _save_locked()


def set_stage(v: Any) -> None:
    stage = _text(v)
    with PROGRESS_LOCK:
        PROGRESS["stage"] = stage
        _stage_changed_locked(stage)
        _tick_locked()
        _save_locked()


def set_layout(v: Any) -> None:
    _write("layout", _text(v))


def set_states_found(n: Any) -> None:
    _write("states_found", _count(n))


def set_edges_found(n: Any) -> None:
    _write("edges_found", _count(n))


def set_progress_pct(pct: Any) -> None:
    _write("percent", _percent(pct), tick=True)


def set_message(msg: Any) -> None:
    _write("message", _text(msg))


_SETTERS: Dict[str, Callable[[Any], None]] = {
    "status": set_status,
    "level": set_level,
    "stage": set_stage,
    "layout": set_layout,
    "states_found": set_states_found,
    "edges_found": set_edges_found,
    "percent": set_progress_pct,
    "message": set_message,
}


def _set_progress(value: Any = None, **kw: Any) -> None:
    """Bulk update, e.g. ``_set_progress(40, stage="layout")``; unknown keys are ignored."""
    if value is not None:
        set_progress_pct(value)
    for k, v in kw.items():
        setter = _SETTERS.get(k)
        if setter is not None:
            setter(v)


# ---------- snapshots ----------

def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _refresh_locked()
        _tick_locked()
        out = {k: v for k, v in PROGRESS.items() if k != "elapsed_start"}
    out["elapsed_str"] = _fmt_elapsed(out["elapsed"])
    return out


as_json = snapshot


with PROGRESS_LOCK:
    _refresh_locked(force=True)
