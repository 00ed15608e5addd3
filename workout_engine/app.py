from __future__ import annotations

from kivy.app import App
from kivy.uix.screenmanager import ScreenManager

from workout_engine.drafts import DraftPersistence, RecoveryFileStore
from workout_engine.events import SessionEvents
from workout_engine.workout_session import WorkoutSession


class WorkoutSessionApp(App):
    """Application shell owning the live session across screens.

    Screens are added to the root manager by the UI layer. The app keeps the
    session's draft current when the OS suspends it and re-reads the rest
    countdown from the wall clock when it comes back.
    """

    workout_session: WorkoutSession | None = None

    def __init__(self, drafts: DraftPersistence | None = None, **kwargs):
        super().__init__(**kwargs)
        self.drafts = drafts or DraftPersistence(RecoveryFileStore())
        self.session_events = SessionEvents()

    def build(self):
        return ScreenManager()

    def start_workout(self, plan=None, planned_workout_id=None, **kwargs) -> WorkoutSession:
        """Start or resume the session for ``plan`` and keep it on the app."""

        kwargs.setdefault("events", self.session_events)
        self.workout_session = WorkoutSession.hydrate(
            self.drafts, plan, planned_workout_id, **kwargs
        )
        return self.workout_session

    def finish_workout(self, duration_minutes=None):
        if self.workout_session is None:
            return None
        result = self.workout_session.complete(duration_minutes)
        if result is not None:
            self.workout_session = None
        return result

    def exit_workout(self) -> None:
        if self.workout_session is not None:
            self.workout_session.exit()
        self.workout_session = None

    def on_pause(self):
        if self.workout_session is not None:
            self.workout_session.on_app_pause()
        return True

    def on_resume(self):
        if self.workout_session is not None:
            self.workout_session.on_app_resume()


if __name__ == "__main__":
    WorkoutSessionApp().run()
