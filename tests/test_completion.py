import sqlite3
from datetime import datetime, timezone

import pytest

from conftest import FakeSaver, ReadOnlyDeleteStore
from workout_engine import completion
from workout_engine.completion import SAVE_ERROR, default_duration_minutes
from workout_engine.drafts import DraftPersistence
from workout_engine.history import get_session_details, get_session_history
from workout_engine.services import CallStatus


@pytest.mark.parametrize(
    "elapsed, plan_duration, expected",
    [
        (0, 50, 50),
        (0, 0, 45),
        (0, 10, 20),
        (600, 50, 20),
        (3600, None, 60),
    ],
)
def test_default_duration_minutes(elapsed, plan_duration, expected):
    assert default_duration_minutes(elapsed, plan_duration) == expected


def test_payload_shape(session, saver):
    session.toggle_set_done(0)
    session.skip_exercise(1)

    session.complete(50, started_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))

    payload, meta = saver.calls[0]
    assert payload["title"] == "Push Day"
    assert payload["location"] == "Gym"
    assert payload["durationMin"] == 50
    bench, dip, fly = payload["exercises"]
    assert bench["id"] == "ex-bench"
    assert bench["reps"] == "8-10"
    assert bench["restSec"] == 90
    assert bench["targetMuscles"] == ["chest", "triceps"]
    assert bench["sets"] == [{"reps": 8, "weight": 60.0}, {"reps": 8, "weight": 60.0}]
    assert bench["done"] is False
    assert dip["skipped"] is True and dip["done"] is True
    assert dip["effort"] is None
    assert fly["sets"] == [{"reps": 15, "weight": 15.0}]
    assert payload["changes"][0]["action"] == "skip"
    assert payload["changes"][0]["fromExerciseId"] == "ex-dip"
    assert payload["feedback"] == {"sessionRpe": 7}
    assert meta == {
        "startedAt": "2026-03-01T09:00:00+00:00",
        "durationMin": 50,
        "plannedWorkoutId": "pw-1",
    }


def test_failed_save_keeps_draft_and_reuses_payload(make_session, drafts):
    saver = FakeSaver(fail=True)
    session = make_session(save_service=saver)
    session.toggle_set_done(0)

    assert session.complete(50) is None
    assert session.save_call.status is CallStatus.ERROR
    assert session.save_call.error == SAVE_ERROR
    assert drafts.load() is not None
    assert session.items[0].sets[0].done

    saver.fail = False
    result = session.complete(70)
    assert result is not None
    assert len(saver.calls) == 2
    assert saver.calls[0][0] == saver.calls[1][0]
    assert saver.calls[1][0]["durationMin"] == 50
    assert saver.calls[0][1] == saver.calls[1][1]


def test_successful_save_clears_state_and_notifies(session, saver, drafts, events, tmp_path):
    seen = []
    events.bind(
        on_plan_completed=lambda *_: seen.append("plan"),
        on_schedule_updated=lambda *_: seen.append("schedule"),
    )
    drafts.cache_plan(session.plan, "pw-1")

    result = session.complete(40)

    assert result["version"] == 1
    assert result["sessionId"] == "srv-1"
    assert result["plannedWorkoutId"] == "pw-1"
    assert result["progressionJob"] is None
    assert result["payload"] == saver.calls[0][0]
    assert drafts.load() is None
    assert drafts.load_cached_plan() is None
    assert drafts.load_last_result() == result
    assert seen == ["plan", "schedule"]

    history = get_session_history(db_path=tmp_path / "history.db")
    assert [h["id"] for h in history] == ["srv-1"]
    details = get_session_details("srv-1", db_path=tmp_path / "history.db")
    assert details["durationMin"] == 40

    # a saved session is never submitted twice
    assert session.complete(40) is result
    assert len(saver.calls) == 1
    session.toggle_set_done(0)
    assert drafts.load() is None


def test_progression_job_is_recorded(make_session):
    saver = FakeSaver(
        response={"sessionId": "srv-9", "progression": {"deload": False}, "progressionJobId": 42}
    )
    session = make_session(save_service=saver)
    result = session.complete()
    assert result["progression"] == {"deload": False}
    assert result["progressionJob"] == {"id": "42", "status": "pending", "lastError": None}
    assert saver.calls[0][0]["durationMin"] == 50


def test_missing_save_service_fails(make_session):
    session = make_session(save_service=None)
    assert session.complete(30) is None
    assert session.save_call.error == SAVE_ERROR


def test_history_failure_does_not_block_completion(session, saver, monkeypatch, caplog):
    def broken(*_args, **_kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(completion, "append_history_record", broken)
    assert session.complete(30) is not None
    assert "Could not append local history record" in caplog.text


def test_failed_draft_cleanup_still_commits_once(make_session, saver, caplog):
    session = make_session(drafts=DraftPersistence(ReadOnlyDeleteStore()))

    first = session.complete(30)
    assert first is not None
    assert session.committer.committed is True
    assert "Could not clear session draft" in caplog.text

    assert session.complete(30) is first
    assert len(saver.calls) == 1
    assert session.save_call.status is CallStatus.SUCCESS
