from __future__ import annotations

from pathlib import Path

# Number of sets an exercise falls back to when the plan omits a count
DEFAULT_SETS_PER_EXERCISE = 1

# Default rest duration between sets in seconds
DEFAULT_REST_DURATION = 120

# Bounds applied to every requested rest window (seconds)
MIN_REST_DURATION = 10
MAX_REST_DURATION = 600

# Delay between requesting a rest window and the countdown starting, giving
# the UI time to transition into the rest overlay.
REST_START_DELAY = 0.35

# How often the running rest window re-reads the wall clock
REST_TICK_INTERVAL = 0.5

# How long a blocked set stays highlighted before clearing itself
BLOCKED_SET_CLEAR_DELAY = 2.2

# Upper bound on reps accepted for a single set
MAX_REPS = 999

# Only the newest change events are kept in the session log
MAX_CHANGE_EVENTS = 120

# Only the newest local history records are kept
MAX_HISTORY_RECORDS = 500

# Fallback duration (minutes) suggested when finishing a session
DEFAULT_SESSION_MINUTES = 45
MIN_SESSION_MINUTES = 20

# Keys used in the local durable key/value store
SESSION_DRAFT_KEY = "session_draft"
PLAN_CACHE_KEY = "plan_cache"
PLANNED_WORKOUT_ID_KEY = "planned_workout_id"
LAST_RESULT_KEY = "last_workout_result"

# Directory for persisted drafts, settings and history
DATA_DIR = Path(__file__).resolve().parent / "data"

# Default path to the local SQLite history database
DEFAULT_DB_PATH = DATA_DIR / "workout.db"

__all__ = [
    "DEFAULT_SETS_PER_EXERCISE",
    "DEFAULT_REST_DURATION",
    "MIN_REST_DURATION",
    "MAX_REST_DURATION",
    "REST_START_DELAY",
    "REST_TICK_INTERVAL",
    "BLOCKED_SET_CLEAR_DELAY",
    "MAX_REPS",
    "MAX_CHANGE_EVENTS",
    "MAX_HISTORY_RECORDS",
    "DEFAULT_SESSION_MINUTES",
    "MIN_SESSION_MINUTES",
    "SESSION_DRAFT_KEY",
    "PLAN_CACHE_KEY",
    "PLANNED_WORKOUT_ID_KEY",
    "LAST_RESULT_KEY",
    "DATA_DIR",
    "DEFAULT_DB_PATH",
]
