"""
Slack Bolt wiring.

Decides which Slack events become agent turns and turns them into
MessageContext objects for the orchestrator:

- app_mention: always handled
- message in a DM: handled
- message in a channel thread without a bot mention: handled only when the
  thread already has a session (the bot is part of the conversation)
- anything else (top-level channel chatter, bot messages, edits, deletions,
  and channel messages that mention the bot, which also arrive as
  app_mention) is ignored
"""

import asyncio
import logging
from typing import Any, Optional

from slack_bolt.async_app import AsyncApp

from slackagent.config import Settings
from slackagent.messaging import ChatMessenger
from slackagent.orchestrator import (
    MessageContext,
    QueryOrchestrator,
    TurnResult,
    derive_session_key,
)
from slackagent.sessions.store import SessionStore
from slackagent.slack.text import is_direct_message, mentions_user, prepare_prompt

logger = logging.getLogger(__name__)

GREETING_TEXT = "Hello! How can I help you?"


class SlackEventRouter:
    """Filters Slack events and hands the relevant ones to the orchestrator."""

    def __init__(
        self,
        orchestrator: QueryOrchestrator,
        store: SessionStore,
        messenger: ChatMessenger,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.messenger = messenger

    async def on_app_mention(
        self, event: dict[str, Any], bot_user_id: Optional[str], team_id: Optional[str]
    ) -> Optional[TurnResult]:
        logger.info(
            f"app_mention from {event.get('user')} in {event.get('channel')} "
            f"(thread {event.get('thread_ts') or event.get('ts')})"
        )
        return await self._dispatch(event, bot_user_id, team_id)

    async def on_message(
        self, event: dict[str, Any], bot_user_id: Optional[str], team_id: Optional[str]
    ) -> Optional[TurnResult]:
        if not await self.should_handle_message(event, bot_user_id, team_id):
            return None
        logger.info(
            f"message from {event.get('user')} in {event.get('channel')} "
            f"(thread {event.get('thread_ts') or event.get('ts')})"
        )
        return await self._dispatch(event, bot_user_id, team_id)

    async def should_handle_message(
        self, event: dict[str, Any], bot_user_id: Optional[str], team_id: Optional[str]
    ) -> bool:
        """Decide whether a plain message event is meant for the bot."""
        if event.get("subtype") or event.get("bot_id"):
            return False
        if not event.get("user") or not event.get("channel"):
            return False
        if bot_user_id and event.get("user") == bot_user_id:
            return False

        channel_id = event["channel"]
        if is_direct_message(channel_id):
            return True

        if mentions_user(event.get("text", ""), bot_user_id):
            # Delivered again as app_mention
            return False

        thread_ts = event.get("thread_ts")
        if not thread_ts:
            return False

        session_key = derive_session_key(self._context(event, team_id, ""))
        return await asyncio.to_thread(self.store.exists, session_key)

    async def _dispatch(
        self, event: dict[str, Any], bot_user_id: Optional[str], team_id: Optional[str]
    ) -> Optional[TurnResult]:
        prompt = await prepare_prompt(
            event.get("text", ""), bot_user_id, self.messenger.get_user_display_name
        )
        context = self._context(event, team_id, prompt)

        if not prompt:
            try:
                await self.messenger.post_message(
                    context.channel_id, context.thread_ts, GREETING_TEXT
                )
            except Exception as e:
                logger.error(f"Failed to post greeting to {context.channel_id}: {e}")
            return None

        return await self.orchestrator.handle_message(context)

    @staticmethod
    def _context(
        event: dict[str, Any], team_id: Optional[str], prompt: str
    ) -> MessageContext:
        return MessageContext(
            text=prompt,
            user_id=event.get("user", ""),
            channel_id=event["channel"],
            thread_ts=event.get("thread_ts") or event["ts"],
            ts=event["ts"],
            team_id=event.get("team") or team_id or "",
        )


def create_slack_app(settings: Settings) -> AsyncApp:
    """Create the Bolt app; listeners are attached with register_listeners."""
    return AsyncApp(
        token=settings.slack_bot_token,
        signing_secret=settings.slack_signing_secret,
    )


def register_listeners(app: AsyncApp, router: SlackEventRouter) -> None:
    """Attach the router's handlers to a Bolt app."""

    @app.event("app_mention")
    async def handle_app_mention(event: dict, context: dict) -> None:
        await router.on_app_mention(
            event, context.get("bot_user_id"), context.get("team_id")
        )

    @app.event("message")
    async def handle_message(event: dict, context: dict) -> None:
        await router.on_message(event, context.get("bot_user_id"), context.get("team_id"))
