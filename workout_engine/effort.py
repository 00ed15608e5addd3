from __future__ import annotations

from workout_engine.models import EFFORT_TAGS


class EffortCapture:
    """One-shot effort prompt shown when an exercise's last set completes.

    The prompt is armed by the store at the moment an exercise finishes and
    is never re-armed by later edits. Choosing a tag stores it on the
    finished item and opens the rest window before the next exercise.
    """

    def __init__(self, store, rest, *, on_prompt=None) -> None:
        self.store = store
        self.rest = rest
        self.on_prompt = on_prompt
        self.pending_index: int | None = None

    @property
    def is_open(self) -> bool:
        return self.pending_index is not None

    def arm(self, exercise_index: int) -> None:
        self.pending_index = exercise_index
        if self.on_prompt is not None:
            self.on_prompt(exercise_index)

    def select(self, tag: str) -> bool:
        """Store ``tag`` on the finished exercise and start the rest window."""

        if tag not in EFFORT_TAGS:
            raise ValueError(f"Unknown effort tag '{tag}'")
        index = self.pending_index
        if index is None or index >= len(self.store.items):
            self.pending_index = None
            return False
        item = self.store.items[index]
        item.effort = tag
        self.pending_index = None
        self.store.changed()

        if index + 1 < len(self.store.items):
            self.rest.queue_advance(index + 1)
            if not self.rest.start(item.rest_sec):
                # resting disabled: move on straight away
                self.rest.skip()
        return True

    def dismiss(self) -> None:
        self.pending_index = None

    def item_removed(self, index: int) -> None:
        if self.pending_index is None:
            return
        if self.pending_index == index:
            self.pending_index = None
        elif self.pending_index > index:
            self.pending_index -= 1

    def item_inserted(self, index: int) -> None:
        if self.pending_index is not None and self.pending_index >= index:
            self.pending_index += 1
