"""
Streaming relay.

Turns a stream of text fragments into a bounded number of edits of one Slack
message. Edits are throttled to a minimum interval and capped at a maximum
length; on finalize any overflow is posted as numbered follow-up messages in
the same thread so no content is lost.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from slackagent.messaging import ChatMessenger, MessageHandle

logger = logging.getLogger(__name__)

STILL_THINKING_SUFFIX = "\n\n🔄 _Still thinking..._"
TRUNCATED_SUFFIX = "\n\n🔄 _Still working... the full response will follow when complete._"
CONTINUED_MARKER = "\n\n_(continued below)_"
CONTINUATION_LABEL = "_Continued {index}/{total}_\n\n"
EMPTY_RESPONSE_TEXT = "I processed your request but have nothing to say."


def split_message(text: str, max_length: int) -> list[str]:
    """
    Split text into consecutive chunks of at most max_length characters.

    Joining the returned chunks reproduces the input exactly.
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    return [text[i : i + max_length] for i in range(0, len(text), max_length)]


def continuation_text(chunk: str, index: int, total: int) -> str:
    """Label a follow-up chunk with its position."""
    return CONTINUATION_LABEL.format(index=index, total=total) + chunk


@dataclass
class RelayStats:
    """Statistics about one relayed response."""

    update_count: int
    content_length: int
    overflowed: bool = False
    followup_count: int = 0


class StreamingRelay:
    """
    Relays streamed agent output into one editable Slack message.

    Owned by a single turn; not safe to share between turns.
    """

    def __init__(
        self,
        messenger: ChatMessenger,
        handle: MessageHandle,
        update_interval_ms: int = 3000,
        max_length: int = 3900,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the relay.

        Args:
            messenger: Chat platform capability
            handle: Message to edit (normally the turn's placeholder)
            update_interval_ms: Minimum time between intermediate edits
            max_length: Longest text sent in a single message
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.messenger = messenger
        self.handle = handle
        self.update_interval = update_interval_ms / 1000
        self.max_length = max_length
        self._clock = clock
        self._buffer = ""
        self._last_update_time = clock()
        self._update_count = 0
        self._followup_count = 0
        self._overflowed = False
        self._finalized = False

    @property
    def text(self) -> str:
        """Content accumulated so far."""
        return self._buffer

    async def add_content(self, fragment: str) -> None:
        """
        Append a fragment and edit the message if the update interval has passed.

        Args:
            fragment: Next piece of response text
        """
        self._buffer += fragment

        now = self._clock()
        if now - self._last_update_time < self.update_interval:
            return

        if len(self._buffer) > self.max_length:
            self._overflowed = True
            text = self._buffer[: self.max_length] + TRUNCATED_SUFFIX
        else:
            text = self._buffer + STILL_THINKING_SUFFIX

        await self._edit(text)
        self._last_update_time = now

    async def finalize(self) -> None:
        """
        Write the complete response.

        The primary message gets the first max_length characters of the
        buffer as received; anything beyond is posted as "Continued i/n"
        replies in the same thread. A whitespace-only buffer gets the
        fallback text instead.
        Calling finalize more than once has no further effect.
        """
        if self._finalized:
            return
        self._finalized = True

        text = self._buffer
        if not text.strip():
            logger.warning("No response text received; sending fallback message")
            await self._edit(EMPTY_RESPONSE_TEXT)
            return

        if len(text) <= self.max_length:
            await self._edit(text)
            return

        self._overflowed = True
        await self._edit(text[: self.max_length] + CONTINUED_MARKER)

        chunks = split_message(text[self.max_length :], self.max_length)
        logger.info(
            f"Response of {len(text)} chars exceeds {self.max_length}; "
            f"posting {len(chunks)} follow-up message(s)"
        )
        for index, chunk in enumerate(chunks, 1):
            try:
                await self.messenger.post_message(
                    self.handle.channel_id,
                    self.handle.thread_ts,
                    continuation_text(chunk, index, len(chunks)),
                )
                self._followup_count += 1
            except Exception as e:
                logger.error(
                    f"Failed to post continuation {index}/{len(chunks)}: {e}"
                )

    async def _edit(self, text: str) -> None:
        # Edit failures never abort the turn
        self._update_count += 1
        try:
            await self.messenger.update_message(self.handle, text)
        except Exception as e:
            logger.error(f"Failed to update streaming message {self.handle.ts}: {e}")

    def get_stats(self) -> RelayStats:
        """Get statistics about the relayed response."""
        return RelayStats(
            update_count=self._update_count,
            content_length=len(self._buffer),
            overflowed=self._overflowed,
            followup_count=self._followup_count,
        )
