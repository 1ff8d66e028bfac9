"""Clocks and timer schedulers.

The autosave coalescer and the profile store never read the wall clock or
start timers directly; they go through these objects so tests can drive
virtual time with :class:`ManualClock`.
"""

import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class SystemClock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def __init__(self):
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> "_ThreadingTimer":
        timer: Optional[threading.Timer] = None

        def run():
            self._forget(timer)
            callback()

        timer = threading.Timer(delay, run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return _ThreadingTimer(self, timer)

    def _forget(self, timer: threading.Timer) -> None:
        with self._lock:
            self._timers.discard(timer)

    @property
    def active_timers(self) -> int:
        """Number of timers scheduled and neither fired nor cancelled."""
        with self._lock:
            return len(self._timers)

    def shutdown(self) -> None:
        """Cancel every timer that has not fired yet."""
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()


class _ThreadingTimer:
    """Handle for a ThreadingScheduler timer; cancelling releases it."""

    def __init__(self, scheduler: ThreadingScheduler, timer: threading.Timer):
        self._scheduler = scheduler
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()
        self._scheduler._forget(self._timer)


class _ManualTimer:
    def __init__(self, due: datetime, seq: int, callback: Callable[[], None]):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_ManualTimer") -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class ManualClock:
    """Virtual clock and scheduler for deterministic tests.

    Time only moves when :meth:`advance` is called. Timers due within the
    advanced span fire in due order, with :meth:`now` reporting each timer's
    due time while its callback runs.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._timers: list[_ManualTimer] = []
        self._seq = itertools.count()
        self._lock = threading.RLock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        with self._lock:
            timer = _ManualTimer(
                self._now + timedelta(seconds=delay), next(self._seq), callback
            )
            heapq.heappush(self._timers, timer)
            return timer

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due timers.

        Returns:
            Number of callbacks that ran
        """
        with self._lock:
            target = self._now + timedelta(seconds=seconds)

        fired = 0
        while True:
            with self._lock:
                if not self._timers or self._timers[0].due > target:
                    self._now = target
                    return fired
                timer = heapq.heappop(self._timers)
                if timer.cancelled:
                    continue
                self._now = timer.due

            # callbacks may schedule new timers on this clock
            timer.callback()
            fired += 1

    @property
    def pending_timers(self) -> int:
        with self._lock:
            return sum(1 for t in self._timers if not t.cancelled)
