from __future__ import annotations

import logging
from pathlib import Path

from core import DEFAULT_DB_PATH
from workout_engine import settings
from workout_engine.completion import CompletionCommitter, default_duration_minutes
from workout_engine.drafts import DraftCheckpoint, MissingPlanError
from workout_engine.effort import EffortCapture
from workout_engine.events import SessionEvents
from workout_engine.models import MenuMode, Plan
from workout_engine.mutations import ExerciseMutationEngine
from workout_engine.rest import RestScheduler
from workout_engine.services import (
    AlternativesService,
    ExclusionService,
    SaveSessionService,
)
from workout_engine.session_store import SessionStore
from workout_engine.timers import Stopwatch

# Session-level subjective intensity, easiest first
SESSION_RPE_OPTIONS = (6, 7, 8, 9, 10)
DEFAULT_SESSION_RPE = 7


def snap_session_rpe(value) -> int:
    """Return the closest allowed session RPE to ``value``."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SESSION_RPE
    return min(SESSION_RPE_OPTIONS, key=lambda option: abs(option - number))


class WorkoutSession:
    """A live workout driven set by set from a plan.

    This wires the store, rest timer, effort prompt, exercise mutations and
    completion together and mirrors every change into the draft store so
    the session can be resumed after a crash or reload. UI screens talk to
    this object only.
    """

    def __init__(
        self,
        plan,
        *,
        planned_workout_id: str | None = None,
        checkpoint: DraftCheckpoint | None = None,
        drafts=None,
        clock=None,
        events: SessionEvents | None = None,
        alternatives_service: AlternativesService | None = None,
        exclusion_service: ExclusionService | None = None,
        save_service: SaveSessionService | None = None,
        rest_enabled=None,
        history_db_path: Path = DEFAULT_DB_PATH,
    ):
        if plan is None:
            raise MissingPlanError("No workout plan available to start a session")
        if isinstance(plan, dict):
            plan = Plan.from_dict(plan)

        self._ready = False
        self.exited = False
        self.plan = plan
        self.planned_workout_id = planned_workout_id or None
        self.drafts = drafts
        self.events = events or SessionEvents()

        self.store = SessionStore(
            clock,
            on_change=self.save_draft,
            on_set_completed=self._on_set_completed,
            on_exercise_completed=self._on_exercise_completed,
        )
        self.rest = RestScheduler(
            clock,
            enabled=rest_enabled if rest_enabled is not None else settings.rest_enabled,
            on_finished=self._on_rest_finished,
            on_advance=self._on_rest_advance,
        )
        self.effort = EffortCapture(self.store, self.rest, on_prompt=self._on_effort_prompt)
        self.mutations = ExerciseMutationEngine(
            self.store,
            effort=self.effort,
            rest=self.rest,
            alternatives_service=alternatives_service,
            exclusion_service=exclusion_service,
        )

        self.resumed = self.store.init(plan, checkpoint, self.planned_workout_id)
        if self.resumed:
            self.stopwatch = Stopwatch(checkpoint.elapsed_seconds, checkpoint.running)
            self.session_rpe = snap_session_rpe(checkpoint.session_rpe)
        else:
            self.stopwatch = Stopwatch()
            self.session_rpe = DEFAULT_SESSION_RPE

        self.committer = CompletionCommitter(
            self.store,
            plan,
            save_service=save_service,
            drafts=drafts,
            events=self.events,
            planned_workout_id=self.planned_workout_id,
            history_db_path=history_db_path,
            session_rpe=lambda: self.session_rpe,
        )
        self._ready = True
        self.save_draft()

    @classmethod
    def hydrate(
        cls,
        drafts,
        plan=None,
        planned_workout_id: str | None = None,
        *,
        title: str | None = None,
        plan_source=None,
        **kwargs,
    ) -> "WorkoutSession":
        """Start or resume the session for a screen entry.

        A plan passed in explicitly always starts fresh; otherwise a matching
        draft is resumed, then the cached plan and finally ``plan_source``
        are tried. Raises :class:`MissingPlanError` when nothing is found.
        """

        explicit = plan is not None
        resolved, draft = drafts.resolve(plan, planned_workout_id, title, plan_source)
        workout_id = planned_workout_id
        if not explicit and not workout_id:
            workout_id = drafts.cached_planned_workout_id()
        if explicit:
            drafts.cache_plan(resolved, workout_id)
        return cls(
            resolved,
            planned_workout_id=workout_id,
            checkpoint=draft,
            drafts=drafts,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # State views
    # ------------------------------------------------------------------

    @property
    def items(self):
        return self.store.items

    @property
    def active_index(self) -> int:
        return self.store.active_index

    @property
    def focus_set_index(self) -> int:
        return self.store.focus_set_index

    @property
    def changes(self):
        return self.store.changes

    @property
    def menu(self):
        return self.store.menu

    @property
    def blocked(self):
        return self.store.blocked

    @property
    def effort_prompt(self) -> int | None:
        return self.effort.pending_index

    @property
    def rest_remaining(self) -> int | None:
        return self.rest.remaining

    @property
    def elapsed_seconds(self) -> int:
        return self.stopwatch.elapsed

    @property
    def running(self) -> bool:
        return self.stopwatch.running

    @property
    def all_done(self) -> bool:
        return self.store.all_done

    @property
    def progress(self) -> int:
        """Percentage of exercises marked done."""

        if not self.store.items:
            return 0
        done = sum(1 for it in self.store.items if it.done)
        return round(done / len(self.store.items) * 100)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def checkpoint(self) -> DraftCheckpoint:
        return DraftCheckpoint(
            title=self.plan.title,
            planned_workout_id=self.planned_workout_id,
            plan=self.plan.to_dict(),
            items=list(self.store.items),
            active_index=self.store.active_index,
            focus_set_index=self.store.focus_set_index,
            changes=list(self.store.changes),
            elapsed_seconds=self.stopwatch.elapsed,
            running=self.stopwatch.running,
            session_rpe=self.session_rpe,
        )

    def save_draft(self) -> None:
        """Write the current state to the draft store."""

        if not self._ready or self.drafts is None:
            return
        if self.exited or self.committer.committed:
            return
        try:
            self.drafts.save(self.checkpoint())
        except (OSError, TypeError, ValueError):
            logging.exception("Could not write session draft")

    # ------------------------------------------------------------------
    # Sets and navigation
    # ------------------------------------------------------------------

    def toggle_set_done(self, set_index: int, exercise_index: int | None = None) -> bool:
        return self.store.toggle_set_done(set_index, exercise_index)

    def update_set_value(self, set_index: int, field: str, value, exercise_index=None) -> bool:
        return self.store.update_set_value(set_index, field, value, exercise_index)

    def bump_set_value(self, set_index: int, field: str, delta, exercise_index=None) -> bool:
        return self.store.bump_set_value(set_index, field, delta, exercise_index)

    def add_set(self, exercise_index: int | None = None) -> bool:
        return self.store.add_set(exercise_index)

    def go_to_exercise(self, index: int) -> int:
        return self.store.go_to_exercise(index)

    def go_next(self) -> int:
        return self.store.go_next()

    def go_prev(self) -> int:
        return self.store.go_prev()

    # ------------------------------------------------------------------
    # Exercise menu
    # ------------------------------------------------------------------

    def open_menu(self, index: int):
        self.mutations.alternatives = []
        self.mutations.alternatives_call.reset()
        self.mutations.exclude_call.reset()
        return self.store.open_menu(index)

    def close_menu(self) -> None:
        self.mutations.alternatives = []
        self.mutations.alternatives_call.reset()
        self.mutations.exclude_call.reset()
        self.store.close_menu()

    def request_menu_mode(self, mode):
        return self.store.set_menu_mode(mode)

    def confirm_menu_action(self, alternative=None):
        """Carry out what the open menu asks for.

        Returns the handler's result, or ``None`` when nothing is open.
        """

        menu = self.store.menu
        if menu is None:
            return None
        handlers = {
            MenuMode.MENU: lambda: None,
            MenuMode.REPLACE: lambda: self._confirm_replace(menu.index, alternative),
            MenuMode.CONFIRM_SKIP: lambda: self.skip_exercise(menu.index),
            MenuMode.CONFIRM_REMOVE: lambda: self.remove_exercise(menu.index),
            MenuMode.CONFIRM_BAN: lambda: self.ban_exercise(menu.index),
        }
        return handlers[menu.mode]()

    def _confirm_replace(self, index: int, alternative):
        if alternative is None:
            raise ValueError("An alternative is required to replace an exercise")
        return self.replace_exercise(index, alternative)

    # ------------------------------------------------------------------
    # Exercise mutations
    # ------------------------------------------------------------------

    def fetch_alternatives(self, index: int | None = None) -> bool:
        return self.mutations.fetch_alternatives(index)

    @property
    def alternatives(self):
        return self.mutations.alternatives

    def replace_exercise(self, index, alternative):
        return self.mutations.replace_exercise(index, alternative)

    def skip_exercise(self, index: int | None = None) -> None:
        self.mutations.skip_exercise(index)

    def remove_exercise(self, index: int | None = None):
        return self.mutations.remove_exercise(index)

    def ban_exercise(self, index: int | None = None) -> bool:
        return self.mutations.ban_exercise(index)

    # ------------------------------------------------------------------
    # Effort, rest and session clock
    # ------------------------------------------------------------------

    def select_effort(self, tag: str) -> bool:
        return self.effort.select(tag)

    def dismiss_effort(self) -> None:
        self.effort.dismiss()

    def skip_rest(self) -> None:
        self.rest.skip()

    def extend_rest(self, seconds: int = 15) -> bool:
        return self.rest.extend(seconds)

    def set_rest_enabled(self, enabled: bool) -> None:
        settings.set_rest_enabled(enabled)
        if not enabled:
            self.rest.cancel()

    def pause(self) -> None:
        self.stopwatch.pause()
        self.save_draft()

    def resume(self) -> None:
        self.stopwatch.resume()
        self.save_draft()

    def set_session_rpe(self, value) -> int:
        self.session_rpe = snap_session_rpe(value)
        self.save_draft()
        return self.session_rpe

    # ------------------------------------------------------------------
    # App lifecycle
    # ------------------------------------------------------------------

    def on_app_pause(self) -> None:
        self.save_draft()

    def on_app_resume(self) -> None:
        self.rest.resync()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def default_duration_minutes(self) -> int:
        return default_duration_minutes(self.stopwatch.elapsed, self.plan.duration)

    @property
    def save_call(self):
        return self.committer.save_call

    def complete(self, duration_minutes=None, started_at=None) -> dict | None:
        """Commit the session; ``None`` means the save failed and may be retried."""

        if duration_minutes is None:
            duration_minutes = self.default_duration_minutes()
        result = self.committer.complete(duration_minutes, started_at)
        if result is not None:
            self.rest.cancel()
            self.stopwatch.pause()
            self.effort.dismiss()
        return result

    def exit(self) -> None:
        """Abandon the session and forget its draft."""

        self.rest.cancel()
        self.stopwatch.pause()
        self.exited = True
        if self.drafts is None:
            return
        try:
            self.drafts.clear()
        except OSError:
            logging.exception("Could not clear session draft")

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    def _on_set_completed(self, index: int, rest_sec: int) -> None:
        self.rest.queue_advance(None)
        self.rest.start(rest_sec)

    def _on_exercise_completed(self, index: int) -> None:
        self.rest.cancel()
        self.effort.arm(index)

    def _on_effort_prompt(self, index: int) -> None:
        self.events.dispatch("on_effort_requested", index)

    def _on_rest_finished(self) -> None:
        if settings.sound_on():
            self.events.dispatch("on_rest_finished")

    def _on_rest_advance(self, index: int) -> None:
        if self.exited or self.committer.committed:
            return
        self.store.go_to_exercise(index)
