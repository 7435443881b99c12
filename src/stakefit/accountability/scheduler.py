"""Periodic background progress refresh."""

import logging
import threading
from typing import Optional

from .challenges.lifecycle import ChallengeLifecycle, ProgressUpdateResult
from .errors import AccountabilityError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 900


class ScheduledTask:
    """Handle to a running scheduler loop."""

    def __init__(self, thread: threading.Thread, stop: threading.Event):
        self._thread = thread
        self._stop = stop

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop the loop and wait for the current pass to finish."""
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)


class ProgressScheduler:
    """Runs update_all_challenges_progress every interval seconds."""

    def __init__(
        self,
        lifecycle: ChallengeLifecycle,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        """Initialize scheduler.

        Args:
            lifecycle: Lifecycle whose progress pass is run
            interval: Seconds between passes
        """
        if interval <= 0:
            raise ValueError(f"Interval must be positive: {interval}")
        self.lifecycle = lifecycle
        self.interval = interval
        self._task: Optional[ScheduledTask] = None

    def run_now(self) -> Optional[ProgressUpdateResult]:
        """Run one pass. Errors are logged and None is returned."""
        try:
            return self.lifecycle.update_all_challenges_progress()
        except AccountabilityError as e:
            logger.error("Scheduled progress update failed: %s", e)
        except Exception:
            logger.exception("Unexpected error in scheduled progress update")
        return None

    def _loop(self, stop: threading.Event) -> None:
        logger.info("Progress scheduler started, interval %ss", self.interval)
        while not stop.is_set():
            self.run_now()
            stop.wait(self.interval)
        logger.info("Progress scheduler stopped")

    def start(self) -> ScheduledTask:
        """Start the loop in a daemon thread. The first pass runs immediately."""
        if self._task and self._task.running:
            return self._task
        stop = threading.Event()
        thread = threading.Thread(
            target=self._loop, args=(stop,), name="progress-scheduler", daemon=True
        )
        thread.start()
        self._task = ScheduledTask(thread, stop)
        return self._task
