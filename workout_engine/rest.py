"""Rest window countdown between sets and exercises."""

from __future__ import annotations

import logging
import math
import time
from enum import Enum

from core import (
    MAX_REST_DURATION,
    MIN_REST_DURATION,
    REST_START_DELAY,
    REST_TICK_INTERVAL,
)
from workout_engine.timers import ScheduledCallback


class RestState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"


class RestScheduler:
    """Turn a requested rest duration into a wall-clock anchored countdown.

    The remaining time is always derived from ``end_timestamp`` and the
    current time, never decremented per tick, so the countdown stays exact
    after the app is suspended. Call :meth:`resync` when the app resumes.

    ``on_finished`` is the completion signal (sound/vibration) and
    ``on_advance`` receives the exercise index queued with
    :meth:`queue_advance` once the window ends or is skipped.
    """

    def __init__(
        self,
        clock=None,
        *,
        enabled=None,
        on_finished=None,
        on_advance=None,
    ) -> None:
        self._enabled = enabled if enabled is not None else (lambda: True)
        self.on_finished = on_finished
        self.on_advance = on_advance
        self.state = RestState.IDLE
        self.duration: int | None = None
        self.end_timestamp: float | None = None
        self.pending_advance: int | None = None
        self._start_timer = ScheduledCallback(self._begin, clock)
        self._ticker = ScheduledCallback(self._tick, clock)

    def _is_enabled(self) -> bool:
        flag = self._enabled() if callable(self._enabled) else self._enabled
        return bool(flag)

    @property
    def remaining(self) -> int | None:
        """Seconds left in the window, or ``None`` when no window is shown."""

        if self.state == RestState.PENDING:
            return self.duration
        if self.state == RestState.RUNNING and self.end_timestamp is not None:
            return max(0, math.ceil(self.end_timestamp - time.time()))
        return None

    @property
    def active(self) -> bool:
        return self.state in (RestState.PENDING, RestState.RUNNING)

    def start(self, seconds) -> bool:
        """Request a rest window of ``seconds``; return ``True`` if accepted."""

        if not self._is_enabled():
            return False
        try:
            requested = int(seconds or 0)
        except (TypeError, ValueError):
            return False
        if requested <= 0:
            return False
        safe = max(MIN_REST_DURATION, min(MAX_REST_DURATION, requested))
        self._start_timer.cancel()
        self._ticker.cancel()
        self.duration = safe
        self.end_timestamp = None
        self.state = RestState.PENDING
        self._start_timer.once(REST_START_DELAY)
        return True

    def _begin(self, *_args) -> None:
        if self.state != RestState.PENDING or self.duration is None:
            return
        self.end_timestamp = time.time() + self.duration
        self.state = RestState.RUNNING
        self._ticker.every(REST_TICK_INTERVAL)

    def _tick(self, *_args):
        self.resync()
        # returning False unschedules a Kivy interval event
        return self.state == RestState.RUNNING

    def resync(self) -> int | None:
        """Recompute the countdown from the wall clock and finish if due."""

        if self.state == RestState.RUNNING and self.remaining == 0:
            self._finish()
        return self.remaining

    def extend(self, delta_seconds) -> bool:
        if self.state != RestState.RUNNING or self.end_timestamp is None:
            return False
        base = max(time.time(), self.end_timestamp)
        self.end_timestamp = base + float(delta_seconds)
        return True

    def queue_advance(self, index: int | None) -> None:
        self.pending_advance = index

    def skip(self) -> None:
        """End the window now, still performing the queued advance."""

        self._start_timer.cancel()
        self._ticker.cancel()
        self.state = RestState.IDLE
        self.duration = None
        self.end_timestamp = None
        self._advance()

    def cancel(self) -> None:
        """Drop the window without advancing."""

        self._start_timer.cancel()
        self._ticker.cancel()
        self.state = RestState.IDLE
        self.duration = None
        self.end_timestamp = None
        self.pending_advance = None

    def _finish(self) -> None:
        self._ticker.cancel()
        self.state = RestState.FINISHED
        self.end_timestamp = None
        if self.on_finished is not None:
            self.on_finished()
        self._advance()

    def _advance(self) -> None:
        target = self.pending_advance
        self.pending_advance = None
        if target is None or self.on_advance is None:
            return
        logging.info("Rest window over, advancing to exercise %s", target)
        self.on_advance(target)
