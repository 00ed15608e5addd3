"""Passive records describing a plan and the session built from it."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from core import DEFAULT_REST_DURATION, DEFAULT_SETS_PER_EXERCISE
from workout_engine.utils import (
    coerce_number,
    default_reps_from_target,
    parse_weight_number,
)

LOAD_TYPES = ("bodyweight", "external", "assisted")

# Subjective post-exercise effort, easiest first
EFFORT_TAGS = ("easy", "working", "quite_hard", "hard", "max")

CHANGE_ACTIONS = ("replace", "remove", "skip", "exclude")


def _pick(data: dict, *keys, default=None):
    """Return the first present key, accepting camelCase and snake_case."""

    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _load_type(value) -> Optional[str]:
    return value if value in LOAD_TYPES else None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PlanExercise:
    """One exercise as prescribed by the plan generator."""

    name: str
    sets: int = DEFAULT_SETS_PER_EXERCISE
    reps: Any = None
    rest_sec: Optional[int] = None
    pattern: Optional[str] = None
    weight: Any = None
    load_type: Optional[str] = None
    requires_weight_input: Optional[bool] = None
    weight_label: Optional[str] = None
    exercise_id: Optional[str] = None
    target_muscles: List[str] = field(default_factory=list)
    technique: Optional[dict] = None
    tagline: Optional[str] = None
    pro_tip: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "PlanExercise":
        nested = data.get("exercise") if isinstance(data.get("exercise"), dict) else {}
        sets = coerce_number(_pick(data, "sets"))
        rest = coerce_number(_pick(data, "rest_sec", "restSec", "rest"))
        exercise_id = _pick(data, "exercise_id", "exerciseId", "id") or nested.get("id")
        return cls(
            name=str(_pick(data, "name", default="")),
            sets=int(sets) if sets and sets > 0 else DEFAULT_SETS_PER_EXERCISE,
            reps=_pick(data, "reps"),
            rest_sec=int(rest) if rest and rest > 0 else None,
            pattern=_pick(data, "pattern"),
            weight=_pick(data, "weight", "target_weight", "targetWeight"),
            load_type=_load_type(_pick(data, "load_type", "loadType")),
            requires_weight_input=_pick(
                data, "requires_weight_input", "requiresWeightInput"
            ),
            weight_label=_pick(data, "weight_label", "weightLabel"),
            exercise_id=str(exercise_id) if exercise_id is not None else None,
            target_muscles=list(_pick(data, "target_muscles", "targetMuscles", default=[])),
            technique=_pick(data, "technique"),
            tagline=_pick(data, "tagline"),
            pro_tip=_pick(data, "pro_tip", "proTip"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Plan:
    """Immutable workout plan handed to the session."""

    title: str
    location: str = ""
    duration: int = 0
    exercises: List[PlanExercise] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Plan":
        # plan sources sometimes wrap the plan as {"plan": {...}}
        if isinstance(data.get("plan"), dict):
            data = data["plan"]
        duration = coerce_number(_pick(data, "duration", "duration_min", "durationMin"))
        return cls(
            title=str(_pick(data, "title", default="")),
            location=str(_pick(data, "location", default="")),
            duration=int(duration) if duration and duration > 0 else 0,
            exercises=[
                ex if isinstance(ex, PlanExercise) else PlanExercise.from_dict(ex)
                for ex in data.get("exercises") or []
            ],
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "location": self.location,
            "duration": self.duration,
            "exercises": [ex.to_dict() for ex in self.exercises],
        }


@dataclass
class SetEntry:
    reps: Optional[int] = None
    weight: Optional[float] = None
    done: bool = False

    def has_values(self) -> bool:
        return self.reps is not None or self.weight is not None

    def to_dict(self) -> dict:
        return {"reps": self.reps, "weight": self.weight, "done": self.done}

    @classmethod
    def from_dict(cls, data: dict) -> "SetEntry":
        reps = coerce_number(data.get("reps"))
        weight = coerce_number(data.get("weight"))
        return cls(
            reps=int(reps) if reps is not None else None,
            weight=weight,
            done=bool(data.get("done", False)),
        )


@dataclass
class SessionItem:
    """One exercise instance within a running session."""

    name: str
    id: Optional[str] = None
    pattern: Optional[str] = None
    target_muscles: List[str] = field(default_factory=list)
    target_reps: Any = None
    target_weight: Optional[str] = None
    rest_sec: int = DEFAULT_REST_DURATION
    load_type: Optional[str] = None
    requires_weight_input: Optional[bool] = None
    weight_label: Optional[str] = None
    sets: List[SetEntry] = field(default_factory=list)
    done: bool = False
    skipped: bool = False
    effort: Optional[str] = None
    technique: Optional[dict] = None
    tagline: Optional[str] = None
    pro_tip: Optional[str] = None

    @classmethod
    def from_plan_exercise(cls, ex: PlanExercise) -> "SessionItem":
        """Build a fresh item, seeding the first set with plan defaults."""

        count = ex.sets if ex.sets and ex.sets > 0 else DEFAULT_SETS_PER_EXERCISE
        sets = [SetEntry() for _ in range(count)]
        sets[0].reps = default_reps_from_target(ex.reps)
        sets[0].weight = parse_weight_number(ex.weight)
        return cls(
            id=ex.exercise_id,
            name=ex.name,
            pattern=ex.pattern,
            target_muscles=list(ex.target_muscles),
            target_reps=ex.reps,
            target_weight=str(ex.weight) if ex.weight is not None else None,
            rest_sec=ex.rest_sec or DEFAULT_REST_DURATION,
            load_type=ex.load_type,
            requires_weight_input=ex.requires_weight_input,
            weight_label=ex.weight_label,
            sets=sets,
            technique=ex.technique,
            tagline=ex.tagline,
            pro_tip=ex.pro_tip,
        )

    @property
    def weight_required(self) -> bool:
        """Return ``True`` if weight must be entered before a set completes."""

        if isinstance(self.requires_weight_input, bool):
            return self.requires_weight_input
        return self.load_type == "external"

    def can_complete_set(self, set_index: int) -> bool:
        entry = self.sets[set_index]
        if entry.reps is None:
            return False
        return not self.weight_required or entry.weight is not None

    def recompute_done(self) -> None:
        """Re-establish the done/skipped invariant."""

        if self.skipped:
            self.done = True
            self.effort = None
            return
        self.done = bool(self.sets) and all(s.done for s in self.sets)

    def next_undone_set_index(self) -> int:
        for idx, entry in enumerate(self.sets):
            if not entry.done:
                return idx
        return max(0, len(self.sets) - 1)

    def performed_set_count(self) -> int:
        """Count sets that are done or already carry reps or weight."""

        return sum(
            1
            for s in self.sets
            if s.done or (s.reps or 0) > 0 or (s.weight or 0) > 0
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["sets"] = [s.to_dict() for s in self.sets]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SessionItem":
        rest = coerce_number(_pick(data, "rest_sec", "restSec"))
        item_id = _pick(data, "id")
        return cls(
            id=str(item_id) if item_id is not None else None,
            name=str(_pick(data, "name", default="")),
            pattern=_pick(data, "pattern"),
            target_muscles=list(_pick(data, "target_muscles", "targetMuscles", default=[])),
            target_reps=_pick(data, "target_reps", "targetReps"),
            target_weight=_pick(data, "target_weight", "targetWeight"),
            rest_sec=int(rest) if rest and rest > 0 else DEFAULT_REST_DURATION,
            load_type=_load_type(_pick(data, "load_type", "loadType")),
            requires_weight_input=_pick(data, "requires_weight_input", "requiresWeightInput"),
            weight_label=_pick(data, "weight_label", "weightLabel"),
            sets=[SetEntry.from_dict(s) for s in data.get("sets") or []],
            done=bool(data.get("done", False)),
            skipped=bool(data.get("skipped", False)),
            effort=data.get("effort"),
            technique=data.get("technique"),
            tagline=data.get("tagline"),
            pro_tip=_pick(data, "pro_tip", "proTip"),
        )


@dataclass
class ChangeEvent:
    """Audit record of a structural change to the session."""

    action: str
    from_exercise_id: Optional[str] = None
    to_exercise_id: Optional[str] = None
    reason: Optional[str] = None
    source: Optional[str] = None
    at: str = field(default_factory=utc_now_iso)
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.action not in CHANGE_ACTIONS:
            raise ValueError(f"Unknown change action '{self.action}'")

    def to_dict(self) -> dict:
        return asdict(self)

    def to_payload(self) -> dict:
        """Return the camelCase shape consumed by downstream collaborators."""

        return {
            "action": self.action,
            "fromExerciseId": self.from_exercise_id,
            "toExerciseId": self.to_exercise_id,
            "reason": self.reason,
            "source": self.source,
            "at": self.at,
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(
            action=data["action"],
            from_exercise_id=_pick(data, "from_exercise_id", "fromExerciseId"),
            to_exercise_id=_pick(data, "to_exercise_id", "toExerciseId"),
            reason=data.get("reason"),
            source=data.get("source"),
            at=data.get("at") or utc_now_iso(),
            meta=dict(data.get("meta") or {}),
        )


@dataclass
class ExerciseAlternative:
    """Substitute exercise offered by the alternatives collaborator."""

    exercise_id: str
    name: str
    hint: Optional[str] = None
    suggested_weight: Optional[float] = None
    load_type: Optional[str] = None
    requires_weight_input: Optional[bool] = None
    weight_label: Optional[str] = None
    patterns: List[str] = field(default_factory=list)
    equipment: List[str] = field(default_factory=list)
    primary_muscles: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ExerciseAlternative":
        suggested = coerce_number(_pick(data, "suggested_weight", "suggestedWeight"))
        return cls(
            exercise_id=str(_pick(data, "exercise_id", "exerciseId", "id")),
            name=str(_pick(data, "name", default="")),
            hint=data.get("hint"),
            suggested_weight=suggested if suggested and suggested > 0 else None,
            load_type=_load_type(_pick(data, "load_type", "loadType")),
            requires_weight_input=_pick(data, "requires_weight_input", "requiresWeightInput"),
            weight_label=_pick(data, "weight_label", "weightLabel"),
            patterns=list(data.get("patterns") or []),
            equipment=list(data.get("equipment") or []),
            primary_muscles=list(_pick(data, "primary_muscles", "primaryMuscles", default=[])),
        )


class MenuMode(str, Enum):
    MENU = "menu"
    REPLACE = "replace"
    CONFIRM_SKIP = "confirm_skip"
    CONFIRM_REMOVE = "confirm_remove"
    CONFIRM_BAN = "confirm_ban"


@dataclass(frozen=True)
class ExerciseMenuState:
    """The secondary surface open for one exercise, if any."""

    index: int
    mode: MenuMode = MenuMode.MENU
