"""Slack Web API implementation of the chat messenger capability."""

import logging
from typing import Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from slackagent.exceptions import MessagingError
from slackagent.messaging import MessageHandle

logger = logging.getLogger(__name__)


class SlackMessenger:
    """Posts and edits Slack messages through an AsyncWebClient."""

    def __init__(self, client: AsyncWebClient):
        self.client = client
        self._display_names: dict[str, Optional[str]] = {}

    async def post_message(
        self, channel_id: str, thread_ts: Optional[str], text: str
    ) -> MessageHandle:
        try:
            response = await self.client.chat_postMessage(
                channel=channel_id, thread_ts=thread_ts, text=text
            )
        except SlackApiError as e:
            raise MessagingError("chat.postMessage", e.response.get("error", str(e))) from e
        except Exception as e:
            raise MessagingError("chat.postMessage", str(e)) from e

        return MessageHandle(channel_id=channel_id, ts=response["ts"], thread_ts=thread_ts)

    async def update_message(self, handle: MessageHandle, text: str) -> None:
        try:
            await self.client.chat_update(channel=handle.channel_id, ts=handle.ts, text=text)
        except SlackApiError as e:
            # msg_too_long lands here as well
            raise MessagingError("chat.update", e.response.get("error", str(e))) from e
        except Exception as e:
            raise MessagingError("chat.update", str(e)) from e

    async def get_user_display_name(self, user_id: str) -> Optional[str]:
        """Look up a display name, caching successful lookups per process."""
        if user_id in self._display_names:
            return self._display_names[user_id]

        name: Optional[str] = None
        try:
            response = await self.client.users_info(user=user_id)
            user = response.get("user") or {}
            profile = user.get("profile") or {}
            name = (
                profile.get("display_name")
                or profile.get("real_name")
                or user.get("real_name")
                or user.get("name")
            )
        except Exception as e:
            logger.warning(f"Could not resolve Slack user {user_id}: {e}")
            return None

        self._display_names[user_id] = name
        return name
