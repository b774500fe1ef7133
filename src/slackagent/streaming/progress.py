"""
Progress reporter.

Shows honest, elapsed-time based status text on the placeholder message until
the first piece of real content arrives. Once content flows the caller stops
the reporter and the streaming relay owns the message.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from slackagent.messaging import ChatMessenger, MessageHandle

logger = logging.getLogger(__name__)

# (upper bound in seconds, status text); the last entry has no bound
PROGRESS_BANDS: list[tuple[Optional[float], str]] = [
    (10, "⏳ _Processing your request..._"),
    (30, "🤔 _Still working on your request..._"),
    (60, "⚠️ _This is taking longer than usual..._"),
    (90, "⏰ _Almost there... (complex queries can take up to 2 minutes)_"),
    (None, "🔄 _Still processing... Please wait a bit longer._"),
]


def status_text_for(elapsed_seconds: float) -> str:
    """Pick the status text for the given elapsed time."""
    for upper_bound, text in PROGRESS_BANDS:
        if upper_bound is None or elapsed_seconds < upper_bound:
            return text
    return PROGRESS_BANDS[-1][1]


class ProgressReporter:
    """Timer-driven status updates for a placeholder message."""

    def __init__(
        self,
        messenger: ChatMessenger,
        handle: MessageHandle,
        update_interval_ms: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.messenger = messenger
        self.handle = handle
        self.update_interval = update_interval_ms / 1000
        self._clock = clock
        self._start_time = clock()
        self._update_count = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    async def start(self) -> None:
        """Show the first status immediately, then refresh on a fixed interval."""
        if self._task is not None or self._stopped:
            return
        self._start_time = self._clock()
        await self._update_progress()
        # stop() may have been called while the first edit was in flight
        if not self._stopped:
            self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Cancel the refresh timer. Idempotent and safe before start()."""
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._stopped

    @property
    def update_count(self) -> int:
        return self._update_count

    def get_elapsed_seconds(self) -> int:
        """Whole seconds since start()."""
        return int(self._clock() - self._start_time)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.update_interval)
            await self._update_progress()

    async def _update_progress(self) -> None:
        elapsed = self.get_elapsed_seconds()
        try:
            await self.messenger.update_message(self.handle, status_text_for(elapsed))
            self._update_count += 1
            logger.debug(f"Progress update #{self._update_count} at {elapsed}s")
        except Exception as e:
            logger.error(f"Failed to update progress message: {e}")
