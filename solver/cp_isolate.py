# solver/cp_isolate.py
import multiprocessing as mp
import queue
from typing import Optional, Sequence, Tuple
import traceback

from models import Board, InvalidPuzzle, Piece

# Worker must be top-level (picklable on Windows spawn)
def _build_worker(q, level: str, board: Board, pieces: Sequence[Piece], backend: Optional[str], max_seconds: float):
    try:
        from solver.combinations import explore_all  # import inside child
        from solver.levels import Level, micro_level
        from solver.search import explore

        lvl = Level.parse(level)
        if lvl is Level.ALL:
            result = explore_all(board, pieces, backend=backend, max_seconds=max_seconds)
        elif lvl is Level.MICRO:
            result = micro_level(board, pieces)
        elif lvl is Level.NORMAL:
            result = explore(board, pieces)
        else:
            q.put(("err", False, None, f"Level {lvl.value!r} cannot run isolated"))
            return
        q.put(("ok", True, result, None))
    except InvalidPuzzle as e:
        q.put(("err", False, None, e.reason))
    except MemoryError:
        q.put(("err", False, None, "Child ran out of memory"))
    except Exception as e:
        q.put(("exc", False, None, f"{e}\n{traceback.format_exc()}"))

def run_isolated(
    level,
    board: Board,
    pieces: Sequence[Piece],
    max_seconds: float,
    backend: Optional[str] = None,
) -> Tuple[bool, object, Optional[str], Optional[str]]:
    """
    Run one level build in a spawned child and hand back the whole result.
    Returns (ok, result, reason, crash_note).
    crash_note is non-empty only if the child crashed/was killed/timed out.
    """
    ctx = mp.get_context("spawn")  # safest on Windows
    q = ctx.Queue()
    level_name = str(getattr(level, "value", level))
    p = ctx.Process(
        target=_build_worker,
        args=(q, level_name, board, tuple(pieces), backend, float(max_seconds)),
    )
    p.daemon = True
    p.start()

    # Results can be large; read before join so the child can flush the pipe.
    timeout = float(max_seconds) + 5.0
    try:
        tag, ok, result, reason = q.get(timeout=timeout)
    except queue.Empty:
        tag = None

    if tag is None:
        if p.is_alive():
            p.terminate()
            p.join(2.0)
            return False, None, "Stopped before completion (timebox)", "killed: timeout"
        p.join(2.0)
        if p.exitcode not in (0, None):
            return False, None, f"Stopped before completion (child exit {p.exitcode})", "child crashed"
        return False, None, "No result from child process", "no-result"

    p.join(2.0)
    if tag == "ok":
        return True, result, None, None
    elif tag == "err":
        return False, None, reason, None
    else:  # "exc"
        return False, None, reason, "child raised"
