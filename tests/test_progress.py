import importlib
import json
import os
import time

from progress import (
    _set_progress, reset, set_done, set_level, set_progress_pct, set_stage, set_status, snapshot,
)
from solver.levels import Level


def test_set_done_no_args_defaults_to_done():
    reset()
    set_done()
    snap = snapshot()
    assert snap["status"] == "Done"
    assert snap["percent"] == 100.0
    assert snap["done"] is True
    assert snap["ok"] is True
    assert snap["message"] == ""


def test_set_done_failure_keeps_reason():
    reset()
    set_status("Searching")
    set_done(False, reason="Bad puzzle: no pieces to move")
    snap = snapshot()
    assert snap["status"] == "Error"
    assert snap["message"] == "Bad puzzle: no pieces to move"
    assert snap["done"] is True
    assert snap["ok"] is False


def test_reset_increments_run_identifier():
    reset()
    first = snapshot()["run_id"]
    reset()
    second = snapshot()["run_id"]
    assert isinstance(first, int)
    assert isinstance(second, int)
    assert second == first + 1


def test_level_accepts_enum_and_percent_is_clamped():
    reset()
    set_level(Level.MICRO)
    set_progress_pct(250)
    snap = snapshot()
    assert snap["level"] == "micro"
    assert snap["percent"] == 100.0
    set_progress_pct("junk")
    assert snapshot()["percent"] == 0.0


def test_fields_populated_via_set_progress():
    reset()
    _set_progress(40, stage="layout", states_found=12, edges_found="30")
    snap = snapshot()
    assert snap["percent"] == 40.0
    assert snap["stage"] == "layout"
    assert snap["states_found"] == 12
    assert snap["edges_found"] == 30
    assert "elapsed_start" not in snap
    assert snap["elapsed_str"] == "0s"


def test_stage_transition_is_logged():
    import progress as progress_module

    reset()
    set_stage("search:normal")
    set_stage("layout")
    assert progress_module.LOG_STATE["stage"] == "layout"
    set_done()
    assert progress_module.LOG_STATE["stage"] == ""


def test_snapshot_reads_state_written_by_other_process(tmp_path, monkeypatch):
    import progress as progress_module

    state_path = tmp_path / "state.json"
    monkeypatch.setenv("PROGRESS_STATE_FILE", str(state_path))
    progress = importlib.reload(progress_module)

    progress.reset()
    progress.set_stage("search:all")
    first = progress.snapshot()
    assert first["stage"] == "search:all"

    data = dict(first)
    data["stage"] = "layout"
    data["states_found"] = 9
    state_path.write_text(json.dumps(data))
    os.utime(state_path, None)

    with progress.PROGRESS_LOCK:
        progress.PROGRESS["stage"] = ""
        progress.PROGRESS["states_found"] = 0
        progress._LAST_STATE_MTIME = 0.0

    time.sleep(0.01)
    updated = progress.snapshot()
    assert updated["stage"] == "layout"
    assert updated["states_found"] == 9

    monkeypatch.delenv("PROGRESS_STATE_FILE", raising=False)
    importlib.reload(progress_module)
