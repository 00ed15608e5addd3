"""Live workout session engine driven from a Kivy UI."""

from __future__ import annotations

from workout_engine.drafts import (
    DraftCheckpoint,
    DraftPersistence,
    MissingPlanError,
    RecoveryFileStore,
)
from workout_engine.models import (
    EFFORT_TAGS,
    ChangeEvent,
    ExerciseAlternative,
    MenuMode,
    Plan,
    PlanExercise,
    SessionItem,
    SetEntry,
)
from workout_engine.services import CallState, CallStatus, SaveResult
from workout_engine.workout_session import SESSION_RPE_OPTIONS, WorkoutSession

__all__ = [
    "EFFORT_TAGS",
    "SESSION_RPE_OPTIONS",
    "CallState",
    "CallStatus",
    "ChangeEvent",
    "DraftCheckpoint",
    "DraftPersistence",
    "ExerciseAlternative",
    "MenuMode",
    "MissingPlanError",
    "Plan",
    "PlanExercise",
    "RecoveryFileStore",
    "SaveResult",
    "SessionItem",
    "SetEntry",
    "WorkoutSession",
]
