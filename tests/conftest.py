import copy
import json
import os
import sys
import time
from pathlib import Path

import pytest

# Keep Kivy headless and quiet before anything imports it
os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_NO_CONSOLELOG", "1")
os.environ.setdefault("KIVY_NO_FILELOG", "1")
os.environ.setdefault("KIVY_NO_CONFIG", "1")
os.environ.setdefault("KIVY_LOG_MODE", "PYTHON")

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workout_engine import settings  # noqa: E402
from workout_engine.drafts import DraftPersistence  # noqa: E402
from workout_engine.events import SessionEvents  # noqa: E402
from workout_engine.models import Plan  # noqa: E402
from workout_engine.workout_session import WorkoutSession  # noqa: E402


SAMPLE_PLAN = {
    "title": "Push Day",
    "location": "Gym",
    "duration": 50,
    "exercises": [
        {
            "exerciseId": "ex-bench",
            "name": "Bench Press",
            "sets": 3,
            "reps": "8-10",
            "restSec": 90,
            "pattern": "horizontal_push",
            "weight": "60 kg",
            "loadType": "external",
            "targetMuscles": ["chest", "triceps"],
        },
        {
            "exerciseId": "ex-dip",
            "name": "Dip",
            "sets": 2,
            "reps": 12,
            "restSec": 60,
            "pattern": "vertical_push",
            "loadType": "bodyweight",
        },
        {
            "exerciseId": "ex-fly",
            "name": "Cable Fly",
            "sets": 2,
            "reps": 15,
            "restSec": 45,
            "pattern": "fly",
            "weight": 15,
            "loadType": "external",
        },
    ],
}


class FakeEvent:
    def __init__(self, clock, callback, timeout, repeat):
        self.clock = clock
        self.callback = callback
        self.timeout = timeout
        self.repeat = repeat
        self.cancelled = False

    def cancel(self):
        self.cancelled = True
        if self in self.clock.events:
            self.clock.events.remove(self)


class FakeClock:
    """Stand-in for ``kivy.clock.Clock`` that only fires on demand."""

    def __init__(self):
        self.events = []

    def schedule_once(self, callback, timeout=0):
        event = FakeEvent(self, callback, timeout, repeat=False)
        self.events.append(event)
        return event

    def schedule_interval(self, callback, timeout):
        event = FakeEvent(self, callback, timeout, repeat=True)
        self.events.append(event)
        return event

    @property
    def pending(self):
        return [ev for ev in self.events if not ev.cancelled]

    def run_pending(self):
        """Fire every event scheduled so far once."""
        for event in list(self.events):
            if event.cancelled:
                continue
            if not event.repeat:
                self.events.remove(event)
                event.callback(event.timeout)
            elif event.callback(event.timeout) is False:
                event.cancel()


class WallClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class MemoryStore:
    """In-memory key/value store that round-trips values through JSON."""

    def __init__(self):
        self.data = {}

    def load(self, key):
        return copy.deepcopy(self.data.get(key))

    def save(self, key, value):
        self.data[key] = json.loads(json.dumps(value))

    def delete(self, key):
        self.data.pop(key, None)


class ReadOnlyDeleteStore(MemoryStore):
    """Memory store whose deletes fail like a read-only filesystem."""

    def delete(self, key):
        raise PermissionError("read-only storage")


class FakeAlternatives:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.calls = []

    def get_alternatives(self, exercise_id, reason, allowed_patterns, limit):
        self.calls.append((exercise_id, reason, allowed_patterns, limit))
        if self.error:
            raise self.error
        return self.results


class FakeExclusion:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def exclude(self, exercise_id, reason, source):
        self.calls.append((exercise_id, reason, source))
        if self.error:
            raise self.error
        return {"ok": True}


class FakeSaver:
    def __init__(self, response=None, fail=False):
        self.response = response or {"sessionId": "srv-1"}
        self.fail = fail
        self.calls = []

    def save_session(self, payload, meta):
        self.calls.append((payload, meta))
        if self.fail:
            raise ConnectionError("offline")
        return self.response


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point user settings at a temporary file for every test."""
    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr(settings, "_settings_cache", None)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def wall_clock(monkeypatch):
    clock = WallClock()
    monkeypatch.setattr(time, "time", clock)
    return clock


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def drafts(memory_store):
    return DraftPersistence(memory_store)


@pytest.fixture
def plan_data():
    return copy.deepcopy(SAMPLE_PLAN)


@pytest.fixture
def plan(plan_data):
    return Plan.from_dict(plan_data)


@pytest.fixture
def saver():
    return FakeSaver()


@pytest.fixture
def exclusion():
    return FakeExclusion()


@pytest.fixture
def alternatives():
    return FakeAlternatives(
        results=[
            {
                "exerciseId": "ex-db",
                "name": "Dumbbell Press",
                "suggestedWeight": 22.5,
                "loadType": "external",
                "patterns": ["horizontal_push"],
            },
            {"exerciseId": "ex-pushup", "name": "Push-up", "loadType": "bodyweight"},
        ]
    )


@pytest.fixture
def events():
    return SessionEvents()


@pytest.fixture
def session_kwargs(
    tmp_path, drafts, fake_clock, wall_clock, saver, exclusion, alternatives, events
):
    return {
        "drafts": drafts,
        "clock": fake_clock,
        "events": events,
        "save_service": saver,
        "exclusion_service": exclusion,
        "alternatives_service": alternatives,
        "rest_enabled": True,
        "history_db_path": tmp_path / "history.db",
    }


@pytest.fixture
def make_session(plan, session_kwargs):
    def factory(custom_plan=None, **overrides):
        kwargs = dict(session_kwargs)
        kwargs.update(overrides)
        kwargs.setdefault("planned_workout_id", "pw-1")
        return WorkoutSession(custom_plan or plan, **kwargs)

    return factory


@pytest.fixture
def session(make_session):
    return make_session()
