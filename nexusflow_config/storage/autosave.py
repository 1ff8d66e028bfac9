"""Trailing-edge debounced autosave."""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from ..models.schemas import DEFAULT_AUTOSAVE_DELAY
from ..utils.clock import Scheduler, ThreadingScheduler, TimerHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AutosaveCoalescer(Generic[T]):
    """Collapse rapid writes into one delayed write of the latest payload.

    Each call cancels the pending flush and schedules a new one ``delay``
    seconds out, so the sink only sees the last payload of a burst, and only
    after the burst has been quiet for ``delay`` seconds. :meth:`flush`
    writes the pending payload immediately.

    Flushes run under ``flush_lock``; two flushes never overlap and a stale
    payload is never written after a newer one.
    """

    def __init__(
        self,
        sink: Callable[[T], object],
        delay: float = DEFAULT_AUTOSAVE_DELAY,
        scheduler: Optional[Scheduler] = None,
        flush_lock: Optional[threading.RLock] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        """Initialize coalescer.

        Args:
            sink: Function receiving the payload to persist
            delay: Quiet period in seconds before the sink runs
            scheduler: Timer scheduler (creates a ThreadingScheduler if None)
            flush_lock: Lock held while the sink runs (creates one if None)
            on_error: Called with the exception when a timer-driven flush fails
        """
        if delay <= 0:
            raise ValueError("Autosave delay must be positive")

        self._sink = sink
        self.delay = delay
        self._scheduler = scheduler or ThreadingScheduler()
        self._flush_lock = flush_lock or threading.RLock()
        self._on_error = on_error

        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._has_pending = False
        self._pending: Optional[T] = None

    def __call__(self, payload: T) -> None:
        """Schedule ``payload`` to be written after the quiet period."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._pending = payload
            self._has_pending = True
            self._handle = self._scheduler.call_later(
                self.delay, lambda: self._fire(generation)
            )
        logger.debug(f"Autosave scheduled in {self.delay}s")

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._has_pending

    @property
    def pending_payload(self) -> Optional[T]:
        with self._lock:
            return self._pending if self._has_pending else None

    def flush(self) -> bool:
        """Write the pending payload now.

        Returns:
            True if a payload was written, False if nothing was pending

        Raises:
            Whatever the sink raises
        """
        with self._flush_lock:
            with self._lock:
                if not self._has_pending:
                    return False
                payload = self._take()

            self._sink(payload)
            logger.debug("Autosave flushed on demand")
            return True

    def cancel(self) -> bool:
        """Drop the pending payload without writing it."""
        return self.cancel_if(lambda payload: True)

    def cancel_if(self, predicate: Callable[[T], bool]) -> bool:
        """Drop the pending payload if ``predicate(payload)`` holds."""
        with self._lock:
            if not self._has_pending or not predicate(self._pending):
                return False
            self._take()
        logger.debug("Pending autosave discarded")
        return True

    def _take(self) -> T:
        # caller holds self._lock
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        payload = self._pending
        self._pending = None
        self._has_pending = False
        return payload

    def _fire(self, generation: int) -> None:
        with self._flush_lock:
            with self._lock:
                if generation != self._generation or not self._has_pending:
                    return
                self._handle = None
                payload = self._take()

            try:
                self._sink(payload)
                logger.debug("Autosave written")
            except Exception as e:
                logger.error(f"Autosave failed: {e}")
                if self._on_error is not None:
                    self._on_error(e)
