import json
import logging

import pytest

from workout_engine.drafts import (
    DraftCheckpoint,
    DraftPersistence,
    MissingPlanError,
    RecoveryFileStore,
)
from workout_engine.workout_session import WorkoutSession


def test_recovery_files_and_backup(tmp_path, caplog):
    store = RecoveryFileStore(tmp_path / "recovery")
    store.save("session_draft", {"title": "Push Day"})

    f1 = tmp_path / "recovery" / "session_draft_1.json"
    f2 = tmp_path / "recovery" / "session_draft_2.json"
    assert f1.exists() and f2.exists()
    assert json.loads(f1.read_text()) == json.loads(f2.read_text())

    # a torn primary write falls back to the backup
    f1.write_text("{broken")
    with caplog.at_level(logging.WARNING):
        assert store.load("session_draft") == {"title": "Push Day"}
    assert "session_draft_1.json" in caplog.text

    f1.unlink()
    assert store.load("session_draft") == {"title": "Push Day"}

    store.delete("session_draft")
    assert not f2.exists()
    assert store.load("session_draft") is None
    store.delete("session_draft")


def test_checkpoint_round_trip_through_files(tmp_path, make_session):
    drafts = DraftPersistence(RecoveryFileStore(tmp_path))
    session = make_session(drafts=drafts)
    session.toggle_set_done(0)
    session.update_set_value(1, "reps", 6)
    session.skip_exercise(1)

    loaded = drafts.load()
    expected = session.checkpoint()
    assert loaded.items == expected.items
    assert loaded.changes == expected.changes
    assert loaded.active_index == expected.active_index
    assert loaded.focus_set_index == expected.focus_set_index == 1
    assert loaded.planned_workout_id == "pw-1"
    assert loaded.plan == session.plan.to_dict()


def test_malformed_draft_is_discarded(memory_store, drafts):
    memory_store.save("session_draft", {"items": []})
    assert drafts.load() is None


def test_checkpoint_matches_identity():
    draft = DraftCheckpoint(title="Push Day", planned_workout_id="pw-1")
    assert draft.matches("Push Day", "pw-1")
    assert not draft.matches("Push Day", "pw-2")
    assert not draft.matches("Leg Day", "pw-1")
    assert DraftCheckpoint(title="Push Day", planned_workout_id="").matches("Push Day", None)


def test_clear_removes_draft_and_workout_id(drafts, plan, memory_store):
    drafts.cache_plan(plan, "pw-1")
    drafts.save(DraftCheckpoint(title="Push Day"))
    drafts.clear()
    assert drafts.load() is None
    assert drafts.cached_planned_workout_id() is None
    assert drafts.load_cached_plan() is not None


def test_explicit_plan_starts_fresh(drafts, plan_data, session_kwargs):
    kwargs = dict(session_kwargs, drafts=drafts)
    first = WorkoutSession.hydrate(planned_workout_id="pw-1", plan=plan_data, **kwargs)
    first.toggle_set_done(0)

    second = WorkoutSession.hydrate(planned_workout_id="pw-1", plan=plan_data, **kwargs)
    assert second.resumed is False
    assert not any(s.done for it in second.items for s in it.sets)


def test_matching_draft_is_resumed(drafts, plan_data, session_kwargs, wall_clock):
    kwargs = dict(session_kwargs, drafts=drafts)
    first = WorkoutSession.hydrate(planned_workout_id="pw-1", plan=plan_data, **kwargs)
    first.toggle_set_done(0)
    first.go_to_exercise(1)
    first.set_session_rpe(9)
    wall_clock.advance(300)
    first.pause()

    resumed = WorkoutSession.hydrate(planned_workout_id="pw-1", **kwargs)
    assert resumed.resumed is True
    assert [it.to_dict() for it in resumed.items] == [it.to_dict() for it in first.items]
    assert resumed.active_index == 1
    assert resumed.focus_set_index == first.focus_set_index == 0
    assert resumed.session_rpe == 9
    assert resumed.elapsed_seconds == 300
    assert resumed.running is False


def test_resumed_session_keeps_set_focus(drafts, plan_data, session_kwargs):
    kwargs = dict(session_kwargs, drafts=drafts)
    first = WorkoutSession.hydrate(planned_workout_id="pw-1", plan=plan_data, **kwargs)
    first.toggle_set_done(0)
    assert first.focus_set_index == 1

    resumed = WorkoutSession.hydrate(planned_workout_id="pw-1", **kwargs)
    assert resumed.resumed is True
    assert resumed.active_index == 0
    assert resumed.focus_set_index == 1


def test_draft_for_other_workout_is_ignored(drafts, plan_data, session_kwargs):
    kwargs = dict(session_kwargs, drafts=drafts)
    first = WorkoutSession.hydrate(planned_workout_id="pw-1", plan=plan_data, **kwargs)
    first.toggle_set_done(0)

    other = WorkoutSession.hydrate(planned_workout_id="pw-2", **kwargs)
    assert other.resumed is False
    assert other.plan.title == "Push Day"
    assert other.planned_workout_id == "pw-2"


def test_cached_plan_then_plan_source(drafts, plan, plan_data, session_kwargs):
    kwargs = dict(session_kwargs, drafts=drafts)
    drafts.cache_plan(plan, "pw-7")
    session = WorkoutSession.hydrate(**kwargs)
    assert session.planned_workout_id == "pw-7"
    assert session.plan == plan

    drafts.clear_plan_cache()
    drafts.clear()
    plan_data["title"] = "Fallback Day"
    sourced = WorkoutSession.hydrate(plan_source=lambda: plan_data, **kwargs)
    assert sourced.plan.title == "Fallback Day"


def test_no_plan_anywhere_raises(drafts, session_kwargs):
    with pytest.raises(MissingPlanError):
        WorkoutSession.hydrate(**dict(session_kwargs, drafts=drafts))
    with pytest.raises(MissingPlanError):
        WorkoutSession(None)


def test_failed_draft_write_is_logged(make_session, caplog):
    class BrokenStore:
        def load(self, key):
            return None

        def save(self, key, value):
            raise OSError("disk full")

        def delete(self, key):
            pass

    with caplog.at_level(logging.ERROR):
        session = make_session(drafts=DraftPersistence(BrokenStore()))
        session.toggle_set_done(0)
    assert session.items[0].sets[0].done
    assert "Could not write session draft" in caplog.text
