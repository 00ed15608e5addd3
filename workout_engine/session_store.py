from __future__ import annotations

from core import BLOCKED_SET_CLEAR_DELAY, MAX_CHANGE_EVENTS, MAX_REPS
from workout_engine.models import (
    ChangeEvent,
    ExerciseMenuState,
    MenuMode,
    Plan,
    SessionItem,
    SetEntry,
)
from workout_engine.timers import ScheduledCallback
from workout_engine.utils import clamp_int, coerce_number, parse_weight_number

SET_FIELDS = ("reps", "weight")


class SessionStore:
    """Single source of truth for session items and cursor state.

    ``on_change`` runs after every mutation, before any side effect, so the
    caller can persist the new state first. ``on_set_completed(index,
    rest_sec)`` fires when a set completes without finishing its exercise and
    ``on_exercise_completed(index)`` when the last open set of an exercise is
    completed.
    """

    def __init__(
        self,
        clock=None,
        *,
        on_change=None,
        on_set_completed=None,
        on_exercise_completed=None,
    ) -> None:
        self.items: list[SessionItem] = []
        self.active_index = 0
        self.focus_set_index = 0
        self.changes: list[ChangeEvent] = []
        # (exercise_index, set_index) of a set that failed validation
        self.blocked: tuple[int, int] | None = None
        self.menu: ExerciseMenuState | None = None
        self.on_change = on_change
        self.on_set_completed = on_set_completed
        self.on_exercise_completed = on_exercise_completed
        self._blocked_timer = ScheduledCallback(self._clear_blocked, clock)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def init(self, plan: Plan, checkpoint=None, planned_workout_id=None) -> bool:
        """Populate the store from ``plan`` or a matching ``checkpoint``.

        Returns ``True`` when the checkpoint was adopted.
        """

        if (
            checkpoint is not None
            and checkpoint.items
            and checkpoint.matches(plan.title, planned_workout_id)
        ):
            self.items = [SessionItem.from_dict(it.to_dict()) for it in checkpoint.items]
            self.changes = [ChangeEvent.from_dict(ev.to_dict()) for ev in checkpoint.changes]
            self.active_index = self._clamp_index(checkpoint.active_index)
            self.focus_set_index = max(0, int(checkpoint.focus_set_index or 0))
            self.blocked = None
            self.menu = None
            return True

        self.items = [SessionItem.from_plan_exercise(ex) for ex in plan.exercises]
        self.changes = []
        self.active_index = 0
        self.blocked = None
        self.menu = None
        self.refocus()
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def active_item(self) -> SessionItem | None:
        if 0 <= self.active_index < len(self.items):
            return self.items[self.active_index]
        return None

    @property
    def all_done(self) -> bool:
        return bool(self.items) and all(it.done for it in self.items)

    def _clamp_index(self, index) -> int:
        if not self.items:
            return 0
        try:
            index = int(index)
        except (TypeError, ValueError):
            index = 0
        return max(0, min(len(self.items) - 1, index))

    def resolve_index(self, exercise_index: int | None) -> int:
        """Return ``exercise_index`` (or the active index) after validation."""

        idx = self.active_index if exercise_index is None else exercise_index
        if idx < 0 or idx >= len(self.items):
            raise IndexError("Invalid exercise index")
        return idx

    def _entry(self, exercise_index, set_index) -> tuple[int, SessionItem, SetEntry]:
        ei = self.resolve_index(exercise_index)
        item = self.items[ei]
        if set_index < 0 or set_index >= len(item.sets):
            raise IndexError("Invalid set index")
        return ei, item, item.sets[set_index]

    def refocus(self) -> None:
        item = self.active_item
        self.focus_set_index = item.next_undone_set_index() if item else 0

    def changed(self) -> None:
        """Refresh derived cursors and notify the persistence hook."""

        self.active_index = self._clamp_index(self.active_index)
        self.refocus()
        if self.on_change is not None:
            self.on_change()

    def _clear_blocked(self, *_args) -> None:
        self.blocked = None

    # ------------------------------------------------------------------
    # Set operations
    # ------------------------------------------------------------------

    def toggle_set_done(self, set_index: int, exercise_index: int | None = None) -> bool:
        """Complete a set; return ``True`` if the session changed.

        Completing an already done set does nothing. A set missing reps (or
        weight, when the exercise needs it) is flagged in :attr:`blocked`
        for a short while instead.
        """

        ei, item, entry = self._entry(exercise_index, set_index)
        if entry.done:
            return False
        if not item.can_complete_set(set_index):
            self.blocked = (ei, set_index)
            self._blocked_timer.once(BLOCKED_SET_CLEAR_DELAY)
            return False

        entry.done = True
        if set_index + 1 < len(item.sets):
            following = item.sets[set_index + 1]
            if following.reps is None and entry.reps is not None:
                following.reps = entry.reps
            if following.weight is None and entry.weight is not None:
                following.weight = entry.weight
        was_done = item.done
        item.recompute_done()
        if self.blocked is not None and self.blocked[0] == ei:
            self._blocked_timer.cancel()
            self.blocked = None

        self.changed()

        if item.done and not was_done:
            if self.on_exercise_completed is not None:
                self.on_exercise_completed(ei)
        elif self.on_set_completed is not None:
            self.on_set_completed(ei, item.rest_sec)
        return True

    def update_set_value(
        self, set_index: int, field: str, value, exercise_index: int | None = None
    ) -> bool:
        """Overwrite reps or weight of an open set."""

        if field not in SET_FIELDS:
            raise KeyError(f"Unknown set field '{field}'")
        _ei, item, entry = self._entry(exercise_index, set_index)
        if entry.done or item.skipped:
            return False
        number = coerce_number(value)
        if field == "reps":
            entry.reps = None if number is None else clamp_int(number, 1, MAX_REPS)
        else:
            entry.weight = None if number is None else round(max(0.0, number), 2)
        item.recompute_done()
        self.changed()
        return True

    def bump_set_value(
        self, set_index: int, field: str, delta, exercise_index: int | None = None
    ) -> bool:
        """Step reps or weight of an open set by ``delta``."""

        if field not in SET_FIELDS:
            raise KeyError(f"Unknown set field '{field}'")
        _ei, _item, entry = self._entry(exercise_index, set_index)
        current = getattr(entry, field) or 0
        return self.update_set_value(
            set_index, field, max(0, current + delta), exercise_index
        )

    def add_set(self, exercise_index: int | None = None) -> bool:
        """Append a set to an exercise that is still in progress."""

        ei = self.resolve_index(exercise_index)
        item = self.items[ei]
        if item.done or item.skipped:
            return False
        last = item.sets[-1] if item.sets else None
        preset = last.weight if last and last.weight and last.weight > 0 else None
        if preset is None:
            preset = parse_weight_number(item.target_weight)
        item.sets.append(SetEntry(weight=preset))
        item.recompute_done()
        self.changed()
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to_exercise(self, index: int) -> int:
        self.active_index = self._clamp_index(index)
        self.changed()
        return self.active_index

    def go_next(self) -> int:
        return self.go_to_exercise(self.active_index + 1)

    def go_prev(self) -> int:
        return self.go_to_exercise(self.active_index - 1)

    # ------------------------------------------------------------------
    # Change log
    # ------------------------------------------------------------------

    def push_change(self, action: str, **fields) -> ChangeEvent:
        event = ChangeEvent(action=action, **fields)
        self.changes.append(event)
        if len(self.changes) > MAX_CHANGE_EVENTS:
            del self.changes[: len(self.changes) - MAX_CHANGE_EVENTS]
        return event

    # ------------------------------------------------------------------
    # Exercise menu
    # ------------------------------------------------------------------

    def open_menu(self, index: int) -> ExerciseMenuState:
        self.resolve_index(index)
        self.menu = ExerciseMenuState(index=index, mode=MenuMode.MENU)
        return self.menu

    def set_menu_mode(self, mode) -> ExerciseMenuState:
        if self.menu is None:
            raise ValueError("No exercise menu is open")
        self.menu = ExerciseMenuState(index=self.menu.index, mode=MenuMode(mode))
        return self.menu

    def close_menu(self) -> None:
        self.menu = None
