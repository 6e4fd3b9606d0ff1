# config.py
import os

# ======= Board range accepted from the editor =======
# The engine works for any positive board; these only bound HTTP requests.
BOARD_MIN_SIDE = int(os.getenv("KS_BOARD_MIN_SIDE", "3"))
BOARD_MAX_SIDE = int(os.getenv("KS_BOARD_MAX_SIDE", "8"))

# ======= Combinatorial ("all placements") guards =======
COMBINATION_MAX_PIECES = int(os.getenv("KS_COMBINATION_MAX_PIECES", "6"))
COMBINATION_BACKEND    = os.getenv("KS_COMBINATION_BACKEND", "backtrack").strip().lower()
CP_MAX_SECONDS         = float(os.getenv("KS_CP_MAX_SECONDS", "30"))
ISOLATE_COMBINATIONS   = int(os.getenv("KS_ISOLATE_COMBINATIONS", "0")) != 0

# ======= Force layout =======
LAYOUT_BASE_ITERATIONS      = int(os.getenv("KS_LAYOUT_BASE_ITERATIONS", "50"))
FORCE_ITERATIONS_MULTIPLIER = int(os.getenv("KS_FORCE_ITERATIONS_MULTIPLIER", "3"))
MAX_FORCE_ITERATIONS_CAP    = int(os.getenv("KS_MAX_FORCE_ITERATIONS_CAP", "200"))

# ======= Abstraction levels =======
# Thorough mode lifts the super-layout ceiling, like the layout multiplier.
SUPER_LAYOUTS_LIMIT          = int(os.getenv("KS_SUPER_LAYOUTS_LIMIT", "8"))
SUPER_LAYOUTS_LIMIT_ADVANCED = int(os.getenv("KS_SUPER_LAYOUTS_LIMIT_ADVANCED", "20"))

# ======= Aggregation =======
AGGREGATE_SIZE = int(os.getenv("KS_AGGREGATE_SIZE", "10"))

# ======= Output names =======
EXPORT_JSON = os.getenv("KS_EXPORT_JSON", "state_space.json")
BOARDS_TXT  = os.getenv("KS_BOARDS_TXT", "boards.txt")

class CFG:
    BOARD_MIN_SIDE = BOARD_MIN_SIDE
    BOARD_MAX_SIDE = BOARD_MAX_SIDE

    COMBINATION_MAX_PIECES = COMBINATION_MAX_PIECES
    COMBINATION_BACKEND    = COMBINATION_BACKEND
    CP_MAX_SECONDS         = CP_MAX_SECONDS
    ISOLATE_COMBINATIONS   = ISOLATE_COMBINATIONS

    LAYOUT_BASE_ITERATIONS      = LAYOUT_BASE_ITERATIONS
    FORCE_ITERATIONS_MULTIPLIER = FORCE_ITERATIONS_MULTIPLIER
    MAX_FORCE_ITERATIONS_CAP    = MAX_FORCE_ITERATIONS_CAP

    SUPER_LAYOUTS_LIMIT          = SUPER_LAYOUTS_LIMIT
    SUPER_LAYOUTS_LIMIT_ADVANCED = SUPER_LAYOUTS_LIMIT_ADVANCED

    AGGREGATE_SIZE = AGGREGATE_SIZE

    EXPORT_JSON = EXPORT_JSON
    BOARDS_TXT  = BOARDS_TXT

__all__ = ["CFG"]
