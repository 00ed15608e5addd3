"""Owned timer handles built on the Kivy clock."""

from __future__ import annotations

import time

from kivy.clock import Clock


class ScheduledCallback:
    """A single slot on the clock that never holds more than one event.

    Scheduling through the slot cancels whatever it held before, so a timer
    of the same kind can never fire twice.
    """

    def __init__(self, callback, clock=None) -> None:
        self._callback = callback
        self._clock = clock or Clock
        self._event = None

    @property
    def active(self) -> bool:
        return self._event is not None

    def once(self, delay: float) -> None:
        self.cancel()
        self._event = self._clock.schedule_once(self._fire_once, delay)

    def every(self, interval: float) -> None:
        self.cancel()
        self._event = self._clock.schedule_interval(self._callback, interval)

    def cancel(self) -> None:
        if self._event is not None:
            self._event.cancel()
            self._event = None

    def _fire_once(self, dt):
        self._event = None
        self._callback(dt)


class Stopwatch:
    """Elapsed session time anchored to the wall clock."""

    def __init__(self, elapsed: float = 0.0, running: bool = True) -> None:
        self._base = max(0.0, float(elapsed or 0))
        self._started_at = time.time() if running else None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> int:
        total = self._base
        if self._started_at is not None:
            total += max(0.0, time.time() - self._started_at)
        return int(total)

    def pause(self) -> None:
        if self._started_at is None:
            return
        self._base += max(0.0, time.time() - self._started_at)
        self._started_at = None

    def resume(self) -> None:
        if self._started_at is None:
            self._started_at = time.time()
