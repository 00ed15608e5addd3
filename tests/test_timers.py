from workout_engine.timers import ScheduledCallback, Stopwatch


def test_scheduled_callback_holds_one_event(fake_clock):
    fired = []
    slot = ScheduledCallback(fired.append, fake_clock)
    slot.once(1.0)
    slot.once(2.0)
    assert len(fake_clock.pending) == 1
    assert slot.active

    fake_clock.run_pending()
    assert fired == [2.0]
    assert not slot.active


def test_scheduled_callback_cancel(fake_clock):
    fired = []
    slot = ScheduledCallback(fired.append, fake_clock)
    slot.every(0.5)
    slot.cancel()
    fake_clock.run_pending()
    assert fired == []
    slot.cancel()


def test_stopwatch_restored_paused(wall_clock):
    watch = Stopwatch(elapsed=95, running=False)
    wall_clock.advance(100)
    assert watch.elapsed == 95
    watch.resume()
    wall_clock.advance(5)
    assert watch.elapsed == 100
