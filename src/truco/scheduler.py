"""
Delayed application of a decision that has already been computed.

The AI decides immediately; its move is applied after ``delay`` seconds so a
UI can show it "thinking". At most one application is pending at a time.
Scheduling again, or cancelling, supersedes the pending one: a superseded
application never runs, even if its timer already fired.

Usage:
    scheduler = DelayedScheduler(delay=1.0)
    scheduler.schedule(lambda: session.dispatch(action))
    ...
    scheduler.cancel()  # new round: drop the stale move
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledApplication:
    """Handle for one pending application."""

    def __init__(self, fn: Callable[[], None], generation: int, label: str = "") -> None:
        self.fn = fn
        self.generation = generation
        self.label = label
        self.done = threading.Event()
        self.cancelled = False
        self.timer: Optional[threading.Timer] = None


class DelayedScheduler:
    """
    Cancellable "compute now, apply later" scheduler backed by threading.Timer.

    With ``delay`` of 0 the application still runs on the timer thread; call
    ``run_pending`` to apply it synchronously instead.
    """

    def __init__(self, delay: float = 1.0) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: Optional[ScheduledApplication] = None
        self._last: Optional[ScheduledApplication] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self, fn: Callable[[], None], label: str = "") -> ScheduledApplication:
        """Apply ``fn`` after the delay, superseding any pending application."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            handle = ScheduledApplication(fn, self._generation, label)
            timer = threading.Timer(self.delay, self._fire, args=(handle,))
            timer.daemon = True
            handle.timer = timer
            self._pending = handle
            self._last = handle
        timer.start()
        return handle

    def cancel(self) -> bool:
        """Drop the pending application; returns True if there was one."""
        with self._lock:
            return self._cancel_locked()

    def _cancel_locked(self) -> bool:
        handle = self._pending
        if handle is None:
            return False
        handle.cancelled = True
        if handle.timer is not None:
            handle.timer.cancel()
        handle.done.set()
        self._pending = None
        logger.debug("Cancelled scheduled application %s", handle.label or handle.generation)
        return True

    def _claim(self, handle: ScheduledApplication) -> bool:
        with self._lock:
            if handle.cancelled or self._pending is not handle:
                return False
            self._pending = None
            return True

    def _fire(self, handle: ScheduledApplication) -> None:
        if not self._claim(handle):
            logger.debug("Discarded stale application %s", handle.label or handle.generation)
            return
        try:
            handle.fn()
        except Exception:
            logger.exception("Scheduled application %s failed", handle.label or handle.generation)
        finally:
            handle.done.set()

    def run_pending(self) -> bool:
        """Apply the pending application now, on the calling thread."""
        with self._lock:
            handle = self._pending
            if handle is None:
                return False
            if handle.timer is not None:
                handle.timer.cancel()
            self._pending = None
        try:
            handle.fn()
        finally:
            handle.done.set()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until no application is pending or running.

        Applications scheduled while waiting (a move that leads to another
        move) are waited for too. Returns False on timeout.
        """
        while True:
            with self._lock:
                handle = self._last
            if handle is None:
                return True
            if not handle.done.wait(timeout):
                return False
            with self._lock:
                if self._last is handle:
                    return True


__all__ = ["ScheduledApplication", "DelayedScheduler"]
