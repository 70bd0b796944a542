"""
Debounced Task

A cancellable, reschedulable deferred call.

CONTRACT: schedule() always cancels the previously scheduled run. A
burst of schedule() calls closer together than `delay` produces exactly
one run, `delay` seconds after the last call.

The action runs on a daemon timer thread, never on the caller's thread,
so scheduling returns immediately.
"""

import threading
from collections.abc import Callable
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class DebouncedTask:
    """
    Run `action` once a quiet period of `delay` seconds has elapsed.

    Args:
        delay: Quiet period in seconds
        action: Zero-argument callable; exceptions are logged, not raised
        name: Thread name, for logs
    """

    def __init__(self, delay: float, action: Callable[[], None], name: str = "debounced-task"):
        self._delay = delay
        self._action = action
        self._name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        # Bumped on every schedule/cancel so a timer that already fired
        # can tell it was superseded
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """(Re)start the quiet period, cancelling any pending run."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1

            timer = threading.Timer(self._delay, self._fire, args=(self._generation,))
            timer.daemon = True
            timer.name = self._name
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """
        Drop the pending run, if any.

        Returns:
            True if a run was pending
        """
        with self._lock:
            timer, self._timer = self._timer, None
            self._generation += 1
        if timer is None:
            return False
        timer.cancel()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None

        try:
            self._action()
        except Exception as e:
            logger.error("debounced_task_failed", task=self._name, error=str(e))
