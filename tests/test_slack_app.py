"""
Tests for Slack event routing.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from slackagent.orchestrator import MessageContext
from slackagent.sessions import SessionMetadata
from slackagent.slack.app import GREETING_TEXT, SlackEventRouter

BOT = "UBOT"


@pytest.fixture
def orchestrator():
    orchestrator = Mock()
    orchestrator.handle_message = AsyncMock(return_value=None)
    return orchestrator


@pytest.fixture
def router(orchestrator, store, messenger):
    return SlackEventRouter(orchestrator, store, messenger)


def event(**fields) -> dict:
    base = {"type": "message", "user": "U1", "channel": "C1", "ts": "200.000001", "text": "hi"}
    base.update(fields)
    return base


class TestAppMention:
    """Tests for app_mention events."""

    @pytest.mark.asyncio
    async def test_mention_starts_thread_on_message(self, router, orchestrator):
        await router.on_app_mention(
            event(type="app_mention", text="<@UBOT> what is 2+2?"), BOT, "T1"
        )

        orchestrator.handle_message.assert_awaited_once_with(
            MessageContext(
                text="what is 2+2?",
                user_id="U1",
                channel_id="C1",
                thread_ts="200.000001",
                ts="200.000001",
                team_id="T1",
            )
        )

    @pytest.mark.asyncio
    async def test_mention_in_thread_uses_thread_root(self, router, orchestrator):
        await router.on_app_mention(
            event(type="app_mention", text="<@UBOT> more", thread_ts="100.000000"), BOT, "T1"
        )

        context = orchestrator.handle_message.await_args.args[0]
        assert context.thread_ts == "100.000000"
        assert context.ts == "200.000001"

    @pytest.mark.asyncio
    async def test_empty_mention_gets_greeting(self, router, orchestrator, messenger):
        await router.on_app_mention(event(type="app_mention", text="<@UBOT>"), BOT, "T1")

        orchestrator.handle_message.assert_not_awaited()
        assert messenger.posts == [("C1", "200.000001", GREETING_TEXT)]

    @pytest.mark.asyncio
    async def test_event_team_takes_precedence(self, router, orchestrator):
        await router.on_app_mention(
            event(type="app_mention", text="<@UBOT> hi", team="T9"), BOT, "T1"
        )

        assert orchestrator.handle_message.await_args.args[0].team_id == "T9"


class TestMessageFiltering:
    """Tests for which message events reach the orchestrator."""

    @pytest.mark.asyncio
    async def test_direct_message_is_handled(self, router, orchestrator):
        await router.on_message(event(channel="D1", text="hello"), BOT, "T1")

        orchestrator.handle_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_top_level_channel_message_is_ignored(self, router, orchestrator):
        await router.on_message(event(text="chatter"), BOT, "T1")

        orchestrator.handle_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_thread_reply_with_session_is_handled(self, router, orchestrator, store):
        store.get_or_create(
            "T1-C1-100.000000",
            SessionMetadata(team_id="T1", user_id="U1", channel_id="C1", thread_ts="100.000000"),
        )

        await router.on_message(event(thread_ts="100.000000", text="follow up"), BOT, "T1")

        orchestrator.handle_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_thread_reply_without_session_is_ignored(self, router, orchestrator):
        await router.on_message(event(thread_ts="100.000000"), BOT, "T1")

        orchestrator.handle_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_channel_message_mentioning_bot_is_left_to_app_mention(
        self, router, orchestrator
    ):
        await router.on_message(event(text="<@UBOT> hi", thread_ts="100.0"), BOT, "T1")

        orchestrator.handle_message.assert_not_awaited()

    @pytest.mark.parametrize(
        "fields",
        [
            {"subtype": "message_changed"},
            {"bot_id": "B1"},
            {"user": BOT},
            {"user": None},
        ],
    )
    @pytest.mark.asyncio
    async def test_non_user_messages_are_ignored(self, router, orchestrator, fields):
        await router.on_message(event(channel="D1", **fields), BOT, "T1")

        orchestrator.handle_message.assert_not_awaited()

