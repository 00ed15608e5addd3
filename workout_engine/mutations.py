"""Structural changes to the exercise list during a session."""

from __future__ import annotations

import logging

from workout_engine.models import ExerciseAlternative, MenuMode, SessionItem, SetEntry
from workout_engine.services import CallState

ALTERNATIVES_LIMIT = 12

NO_EXERCISE_ID_ERROR = "This exercise has no id, so it cannot be replaced automatically."
ALTERNATIVES_ERROR = "Could not load replacement options. Check your connection and try again."
EXCLUDE_ERROR = "Could not exclude the exercise. Please try again."


class ExerciseMutationEngine:
    """Replace, skip, remove and exclude exercises without losing logged work."""

    def __init__(
        self,
        store,
        *,
        effort=None,
        rest=None,
        alternatives_service=None,
        exclusion_service=None,
    ) -> None:
        self.store = store
        self.effort = effort
        self.rest = rest
        self.alternatives_service = alternatives_service
        self.exclusion_service = exclusion_service
        self.alternatives: list[ExerciseAlternative] = []
        self.alternatives_call = CallState()
        self.exclude_call = CallState()

    # ------------------------------------------------------------------
    # Index bookkeeping for prompts and queued rest advances
    # ------------------------------------------------------------------

    def _item_inserted(self, index: int) -> None:
        if self.effort is not None:
            self.effort.item_inserted(index)
        # a queued advance to the insertion point lands on the new item
        if self.rest is not None and self.rest.pending_advance is not None:
            if self.rest.pending_advance > index:
                self.rest.pending_advance += 1

    def _item_removed(self, index: int) -> None:
        if self.effort is not None:
            self.effort.item_removed(index)
        if self.rest is not None and self.rest.pending_advance is not None:
            if self.rest.pending_advance > index:
                self.rest.pending_advance -= 1
            elif self.rest.pending_advance >= len(self.store.items):
                self.rest.pending_advance = None

    def _finish(self) -> None:
        self.store.close_menu()
        self.alternatives = []
        self.alternatives_call.reset()
        self.exclude_call.reset()
        self.store.changed()

    # ------------------------------------------------------------------
    # Alternatives lookup
    # ------------------------------------------------------------------

    def fetch_alternatives(self, index: int | None = None, reason: str = "equipment_busy") -> bool:
        """Load substitutes for an exercise and switch the menu to replace mode."""

        ei = self.store.resolve_index(index)
        item = self.store.items[ei]
        if not item.id:
            self.alternatives_call.fail(NO_EXERCISE_ID_ERROR)
            return False
        if self.alternatives_service is None:
            self.alternatives_call.fail(ALTERNATIVES_ERROR)
            return False

        self.alternatives_call.begin()
        patterns = [item.pattern] if item.pattern else None
        try:
            found = self.alternatives_service.get_alternatives(
                str(item.id), reason, patterns, ALTERNATIVES_LIMIT
            )
        except Exception:
            logging.exception("Alternatives lookup failed for %s", item.id)
            self.alternatives_call.fail(ALTERNATIVES_ERROR)
            return False

        self.alternatives = [
            alt if isinstance(alt, ExerciseAlternative) else ExerciseAlternative.from_dict(alt)
            for alt in (found or [])
        ]
        self.alternatives_call.succeed(self.alternatives)
        self.store.open_menu(ei)
        self.store.set_menu_mode(MenuMode.REPLACE)
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_exercise(self, index: int | None, alternative) -> SessionItem:
        """Swap an exercise for ``alternative``.

        An exercise with no performed sets (none done and none carrying reps
        or weight) is replaced in place. Otherwise the first performed sets
        stay on the original, which is closed, and the alternative is
        inserted right after it with the remaining sets.
        Returns the item now carrying the alternative.
        """

        if not isinstance(alternative, ExerciseAlternative):
            alternative = ExerciseAlternative.from_dict(alternative)
        store = self.store
        ei = store.resolve_index(index)
        current = store.items[ei]
        from_id = str(current.id) if current.id else None
        suggested = alternative.suggested_weight
        performed = current.performed_set_count()
        total = len(current.sets)

        if performed == 0:
            current.id = alternative.exercise_id
            current.name = alternative.name
            current.load_type = alternative.load_type
            current.requires_weight_input = alternative.requires_weight_input
            current.weight_label = alternative.weight_label
            current.target_weight = str(suggested) if suggested is not None else None
            current.skipped = False
            current.done = False
            current.effort = None
            current.technique = None
            current.tagline = None
            current.pro_tip = None
            current.sets = [SetEntry(weight=suggested) for _ in range(total or 1)]
            target = current
            if self.effort is not None and self.effort.pending_index == ei:
                self.effort.dismiss()
        else:
            current.sets = current.sets[: max(1, performed)]
            for entry in current.sets:
                entry.done = True
            current.done = True
            remaining = max(1, total - performed)
            target = SessionItem(
                id=alternative.exercise_id,
                name=alternative.name,
                pattern=current.pattern,
                target_muscles=list(current.target_muscles),
                target_reps=current.target_reps,
                target_weight=str(suggested) if suggested is not None else None,
                rest_sec=current.rest_sec,
                load_type=alternative.load_type,
                requires_weight_input=alternative.requires_weight_input,
                weight_label=alternative.weight_label,
                sets=[SetEntry(weight=suggested) for _ in range(remaining)],
            )
            store.items.insert(ei + 1, target)
            self._item_inserted(ei + 1)
            if store.active_index >= ei:
                store.active_index += 1

        store.push_change(
            "replace",
            from_exercise_id=from_id,
            to_exercise_id=str(alternative.exercise_id),
            reason="user_replace",
            source="user",
            meta={"index": ei, "performedSets": performed, "totalSets": total},
        )
        self._finish()
        return target

    def skip_exercise(self, index: int | None = None) -> None:
        store = self.store
        ei = store.resolve_index(index)
        item = store.items[ei]
        for entry in item.sets:
            entry.done = True
        item.skipped = True
        item.done = True
        item.effort = None
        if self.effort is not None and self.effort.pending_index == ei:
            self.effort.dismiss()
        store.push_change(
            "skip",
            from_exercise_id=item.id,
            reason="user_skip",
            source="user",
            meta={"index": ei},
        )
        if ei == store.active_index and ei < len(store.items) - 1:
            store.active_index = ei + 1
        self._finish()

    def remove_exercise(self, index: int | None = None) -> SessionItem:
        store = self.store
        ei = store.resolve_index(index)
        removed = store.items.pop(ei)
        if ei < store.active_index:
            store.active_index -= 1
        self._item_removed(ei)
        store.push_change(
            "remove",
            from_exercise_id=removed.id,
            reason="user_remove",
            source="user",
            meta={"index": ei, "name": removed.name},
        )
        self._finish()
        return removed

    def ban_exercise(self, index: int | None = None) -> bool:
        """Exclude an exercise from future plans via the exclusion collaborator.

        On failure the session is left untouched and the error is kept in
        :attr:`exclude_call` so the user can retry.
        """

        store = self.store
        ei = store.resolve_index(index)
        item = store.items[ei]
        if not item.id:
            self.exclude_call.fail(NO_EXERCISE_ID_ERROR)
            return False
        if self.exclusion_service is None:
            self.exclude_call.fail(EXCLUDE_ERROR)
            return False

        self.exclude_call.begin()
        try:
            self.exclusion_service.exclude(
                str(item.id), reason="user_ban_from_session", source="user"
            )
        except Exception:
            logging.exception("Excluding exercise %s failed", item.id)
            self.exclude_call.fail(EXCLUDE_ERROR)
            return False

        store.push_change(
            "exclude",
            from_exercise_id=str(item.id),
            reason="user_ban",
            source="user",
            meta={"index": ei, "name": item.name},
        )
        self._finish()
        return True
