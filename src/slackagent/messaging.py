"""
Chat platform capability used by the relay, progress reporter and orchestrator.

Only message text and handles cross this boundary; platform payload details
stay inside the implementation.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class MessageHandle:
    """Identifies one posted message so it can be edited later."""

    channel_id: str
    ts: str
    thread_ts: Optional[str] = None


class ChatMessenger(Protocol):
    """Operations the core needs from the chat platform."""

    async def post_message(
        self, channel_id: str, thread_ts: Optional[str], text: str
    ) -> MessageHandle:
        """Post a message, optionally into a thread. Raises MessagingError."""
        ...

    async def update_message(self, handle: MessageHandle, text: str) -> None:
        """Replace the text of a posted message. Raises MessagingError."""
        ...

    async def get_user_display_name(self, user_id: str) -> Optional[str]:
        """Look up a user's display name, or None if unavailable."""
        ...
