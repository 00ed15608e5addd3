"""Validation and submission of a finished workout session."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from core import DEFAULT_DB_PATH, DEFAULT_SESSION_MINUTES, MIN_SESSION_MINUTES
from workout_engine.history import append_history_record
from workout_engine.services import CallState, SaveResult
from workout_engine.utils import coerce_number, normalize_reps_for_payload

SAVE_ERROR = "Could not save the workout. Check your connection and try again."


def default_duration_minutes(elapsed_seconds: int, plan_duration: int | None) -> int:
    """Duration suggested in the finish dialog."""

    return max(
        MIN_SESSION_MINUTES,
        round((elapsed_seconds or 0) / 60) or plan_duration or DEFAULT_SESSION_MINUTES,
    )


def _iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return str(value)


class CompletionCommitter:
    """Build the finalize payload and hand it to the save collaborator.

    The payload is built once per commit attempt and reused by retries, and
    a session that was saved successfully is never submitted again.
    """

    def __init__(
        self,
        store,
        plan,
        *,
        save_service=None,
        drafts=None,
        events=None,
        planned_workout_id: str | None = None,
        history_db_path: Path = DEFAULT_DB_PATH,
        session_rpe=None,
    ) -> None:
        self.store = store
        self.plan = plan
        self.save_service = save_service
        self.drafts = drafts
        self.events = events
        self.planned_workout_id = planned_workout_id
        self.history_db_path = Path(history_db_path)
        self._session_rpe = session_rpe or (lambda: None)
        self.save_call = CallState()
        self.payload: dict | None = None
        self.meta: dict | None = None
        self.result: dict | None = None

    @property
    def committed(self) -> bool:
        return self.result is not None

    def build_payload(self, duration_minutes) -> dict:
        number = coerce_number(duration_minutes)
        duration = max(1, int(round(number))) if number and number > 0 else DEFAULT_SESSION_MINUTES
        return {
            "title": self.plan.title,
            "location": self.plan.location,
            "durationMin": duration,
            "exercises": [
                {
                    "id": item.id,
                    "name": item.name,
                    "pattern": item.pattern,
                    "targetMuscles": list(item.target_muscles),
                    "restSec": item.rest_sec,
                    "reps": normalize_reps_for_payload(item.target_reps),
                    "done": bool(item.done),
                    "skipped": bool(item.skipped),
                    "effort": item.effort,
                    "sets": [
                        {"reps": s.reps, "weight": s.weight}
                        for s in item.sets
                        if s.has_values()
                    ],
                }
                for item in self.store.items
            ],
            "changes": [ev.to_payload() for ev in self.store.changes],
            "feedback": {"sessionRpe": self._session_rpe()},
        }

    def complete(self, duration_minutes, started_at=None) -> dict | None:
        """Submit the session; return the stored result or ``None`` on failure.

        On failure the error is kept in :attr:`save_call` and the session,
        draft and payload stay untouched so the same commit can be retried.
        """

        if self.result is not None:
            return self.result
        if self.save_call.loading:
            return None
        if self.payload is None:
            self.payload = self.build_payload(duration_minutes)
            if started_at is None:
                started_at = datetime.now(timezone.utc) - timedelta(
                    minutes=self.payload["durationMin"]
                )
            meta = {
                "startedAt": _iso(started_at),
                "durationMin": self.payload["durationMin"],
            }
            if self.planned_workout_id:
                meta["plannedWorkoutId"] = self.planned_workout_id
            self.meta = meta

        if self.save_service is None:
            self.save_call.fail(SAVE_ERROR)
            return None

        self.save_call.begin()
        try:
            response = self.save_service.save_session(self.payload, dict(self.meta))
        except Exception:
            logging.exception("Saving workout session '%s' failed", self.plan.title)
            self.save_call.fail(SAVE_ERROR)
            return None

        saved = SaveResult.from_response(response)
        self.save_call.succeed(saved)
        created_at = datetime.now(timezone.utc).isoformat()
        # committed from here on, so a retry never saves the session twice
        self.result = self._build_result(saved, created_at)
        self._store_locally(saved, created_at)
        return self.result

    def _build_result(self, saved: SaveResult, created_at: str) -> dict:
        return {
            "version": 1,
            "createdAt": created_at,
            "sessionId": saved.session_id,
            "plannedWorkoutId": self.planned_workout_id,
            "payload": self.payload,
            "progression": saved.progression,
            "progressionJob": (
                {
                    "id": saved.progression_job_id,
                    "status": saved.progression_job_status,
                    "lastError": None,
                }
                if saved.progression_job_id
                else None
            ),
        }

    def _store_locally(self, saved: SaveResult, created_at: str) -> None:
        if self.drafts is not None:
            try:
                self.drafts.save_last_result(self.result)
            except (OSError, TypeError, ValueError):
                logging.exception("Could not store last workout result")

        record = {
            "id": saved.session_id or uuid.uuid4().hex,
            "finishedAt": created_at,
            **self.payload,
        }
        try:
            append_history_record(record, db_path=self.history_db_path)
        except (OSError, sqlite3.Error):
            logging.exception("Could not append local history record")

        if self.drafts is not None:
            try:
                self.drafts.clear()
                self.drafts.clear_plan_cache()
            except OSError:
                logging.exception("Could not clear session draft")
        logging.info("Workout session '%s' saved as %s", self.plan.title, saved.session_id)

        if self.events is not None:
            self.events.dispatch("on_plan_completed")
            self.events.dispatch("on_schedule_updated")
