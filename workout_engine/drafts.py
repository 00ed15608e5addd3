"""Resumable session drafts kept in a local key/value store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol

from core import (
    DATA_DIR,
    LAST_RESULT_KEY,
    PLAN_CACHE_KEY,
    PLANNED_WORKOUT_ID_KEY,
    SESSION_DRAFT_KEY,
)
from workout_engine.models import ChangeEvent, Plan, SessionItem, utc_now_iso


class MissingPlanError(ValueError):
    """Raised when no plan can be found to start a session from."""


class DraftStore(Protocol):
    """Persistence port for the local durable key/value store."""

    def load(self, key: str) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class RecoveryFileStore:
    """Key/value store writing every key to a primary and a backup file.

    A crash while writing one file still leaves the other readable.
    """

    def __init__(self, base_dir: Path = DATA_DIR) -> None:
        self.base_dir = Path(base_dir)

    def _paths(self, key: str) -> tuple[Path, Path]:
        return (
            self.base_dir / f"{key}_1.json",
            self.base_dir / f"{key}_2.json",
        )

    def load(self, key: str):
        for path in self._paths(key):
            try:
                if not path.exists():
                    continue
                text = path.read_text(encoding="utf-8").strip()
                if not text:
                    continue
                return json.loads(text)
            except (OSError, ValueError):
                logging.warning("Unreadable recovery file %s, trying backup", path)
                continue
        return None

    def save(self, key: str, value) -> None:
        payload = json.dumps(value)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in self._paths(key):
            path.write_text(payload, encoding="utf-8")

    def delete(self, key: str) -> None:
        for path in self._paths(key):
            try:
                path.unlink()
            except FileNotFoundError:
                pass


@dataclass
class DraftCheckpoint:
    """Serializable snapshot of a running session."""

    title: str
    planned_workout_id: Optional[str] = None
    plan: Optional[dict] = None
    items: List[SessionItem] = field(default_factory=list)
    active_index: int = 0
    focus_set_index: int = 0
    changes: List[ChangeEvent] = field(default_factory=list)
    elapsed_seconds: int = 0
    running: bool = True
    session_rpe: Optional[float] = None
    updated_at: str = field(default_factory=utc_now_iso)

    def matches(self, title: str | None, planned_workout_id: str | None) -> bool:
        """Return ``True`` if this draft belongs to the given plan identity."""

        return self.title == title and (self.planned_workout_id or None) == (
            planned_workout_id or None
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "planned_workout_id": self.planned_workout_id,
            "plan": self.plan,
            "items": [it.to_dict() for it in self.items],
            "active_index": self.active_index,
            "focus_set_index": self.focus_set_index,
            "changes": [ev.to_dict() for ev in self.changes],
            "elapsed_seconds": self.elapsed_seconds,
            "running": self.running,
            "session_rpe": self.session_rpe,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DraftCheckpoint":
        active = data.get("active_index", 0)
        return cls(
            title=data["title"],
            planned_workout_id=data.get("planned_workout_id"),
            plan=data.get("plan"),
            items=[SessionItem.from_dict(it) for it in data.get("items") or []],
            active_index=max(0, int(active)) if isinstance(active, (int, float)) else 0,
            focus_set_index=max(0, int(data.get("focus_set_index") or 0)),
            changes=[ChangeEvent.from_dict(ev) for ev in data.get("changes") or []],
            elapsed_seconds=int(data.get("elapsed_seconds") or 0),
            running=bool(data.get("running", True)),
            session_rpe=data.get("session_rpe"),
            updated_at=data.get("updated_at") or utc_now_iso(),
        )


class DraftPersistence:
    """Read and write drafts, plan snapshots and results through a store."""

    def __init__(self, store: DraftStore) -> None:
        self.store = store

    # draft checkpoint -------------------------------------------------

    def save(self, checkpoint: DraftCheckpoint) -> None:
        self.store.save(SESSION_DRAFT_KEY, checkpoint.to_dict())

    def load(self) -> DraftCheckpoint | None:
        raw = self.store.load(SESSION_DRAFT_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return DraftCheckpoint.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logging.exception("Discarding malformed session draft")
            return None

    def clear(self) -> None:
        self.store.delete(SESSION_DRAFT_KEY)
        self.store.delete(PLANNED_WORKOUT_ID_KEY)

    # plan snapshot ----------------------------------------------------

    def cache_plan(self, plan: Plan, planned_workout_id: str | None = None) -> None:
        self.store.save(PLAN_CACHE_KEY, {"plan": plan.to_dict()})
        if planned_workout_id:
            self.store.save(PLANNED_WORKOUT_ID_KEY, planned_workout_id)

    def load_cached_plan(self) -> Plan | None:
        raw = self.store.load(PLAN_CACHE_KEY)
        if not isinstance(raw, dict):
            return None
        plan = Plan.from_dict(raw)
        return plan if plan.exercises else None

    def cached_planned_workout_id(self) -> str | None:
        value = self.store.load(PLANNED_WORKOUT_ID_KEY)
        return value.strip() if isinstance(value, str) and value.strip() else None

    def clear_plan_cache(self) -> None:
        self.store.delete(PLAN_CACHE_KEY)

    # last result ------------------------------------------------------

    def save_last_result(self, result: dict) -> None:
        self.store.save(LAST_RESULT_KEY, result)

    def load_last_result(self) -> dict | None:
        raw = self.store.load(LAST_RESULT_KEY)
        return raw if isinstance(raw, dict) else None

    # hydration --------------------------------------------------------

    def resolve(
        self,
        plan: Plan | dict | None = None,
        planned_workout_id: str | None = None,
        title: str | None = None,
        plan_source=None,
    ) -> tuple[Plan, DraftCheckpoint | None]:
        """Pick the plan (and draft, if any) a session should start from.

        1. A plan handed over explicitly always starts a fresh session.
        2. A stored draft for the requested scheduled workout is resumed.
        3. The cached plan snapshot is used next.
        4. ``plan_source`` is called as the last resort.

        Raises :class:`MissingPlanError` when nothing is available.
        """

        if plan is not None:
            if isinstance(plan, dict):
                plan = Plan.from_dict(plan)
            return plan, None

        workout_id = planned_workout_id or self.cached_planned_workout_id()
        draft = self.load()
        if (
            draft is not None
            and draft.items
            and draft.plan
            and (title is None or draft.title == title)
            and (draft.planned_workout_id or None) == (workout_id or None)
        ):
            return Plan.from_dict(draft.plan), draft

        cached = self.load_cached_plan()
        if cached is not None:
            return cached, draft

        if plan_source is not None:
            sourced = plan_source()
            if sourced is not None:
                if isinstance(sourced, dict):
                    sourced = Plan.from_dict(sourced)
                return sourced, draft

        raise MissingPlanError("No workout plan available to start a session")
