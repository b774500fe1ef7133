"""
Background worker that evicts inactive sessions.

Runs on its own thread so eviction happens on a fixed schedule regardless of
request traffic.
"""

import logging
import threading
import time
from typing import Optional

from slackagent.sessions.store import SessionStore

logger = logging.getLogger(__name__)


class SessionCleanupWorker:
    """
    Periodically deletes session records older than the store's TTL.

    Features:
    - Single background thread, stopped via an event
    - A failed pass is logged and the schedule continues
    """

    def __init__(self, store: SessionStore, interval_seconds: float = 3600.0):
        """
        Initialize the cleanup worker.

        Args:
            store: Session store to evict from
            interval_seconds: Seconds between eviction passes
        """
        self.store = store
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._passes = 0
        self._failures = 0
        self._evicted = 0
        self._last_run_time: Optional[float] = None

    def start(self) -> None:
        """Start the worker thread (no-op if already running)."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run, name="session-cleanup", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Session cleanup scheduled every {self.interval_seconds / 3600:g} hour(s)"
        )

    def run(self) -> None:
        """
        Main worker loop.

        Waits one interval, then evicts, until stopped.
        """
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()

        logger.info(
            f"Session cleanup worker stopped. "
            f"Passes: {self._passes}, Failed: {self._failures}, Evicted: {self._evicted}"
        )

    def run_once(self) -> int:
        """
        Run a single eviction pass.

        Returns:
            Number of records evicted (0 if the pass failed)
        """
        logger.debug("Running session cleanup pass")
        self._passes += 1
        self._last_run_time = time.time()
        try:
            evicted = self.store.evict_expired()
        except Exception as e:
            self._failures += 1
            logger.error(f"Session cleanup pass failed: {e}", exc_info=True)
            return 0

        self._evicted += evicted
        return evicted

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the worker to stop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        """Check if the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.is_running,
            "passes": self._passes,
            "failures": self._failures,
            "evicted": self._evicted,
            "last_run_time": self._last_run_time,
        }
