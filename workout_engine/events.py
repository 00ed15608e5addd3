from __future__ import annotations

from kivy.event import EventDispatcher


class SessionEvents(EventDispatcher):
    """Notifications other screens bind to while a session runs.

    ``on_plan_completed`` and ``on_schedule_updated`` carry no payload; they
    only tell the schedule and progress screens to refresh.
    ``on_rest_finished`` is the cue for a sound or vibration.
    """

    __events__ = (
        "on_rest_finished",
        "on_effort_requested",
        "on_plan_completed",
        "on_schedule_updated",
    )

    def on_rest_finished(self, *args):
        pass

    def on_effort_requested(self, *args):
        pass

    def on_plan_completed(self, *args):
        pass

    def on_schedule_updated(self, *args):
        pass
