"""
Tests for Slack message text preprocessing.
"""

import pytest

from slackagent.slack.text import (
    is_direct_message,
    mentions_user,
    prepare_prompt,
    resolve_user_mentions,
    strip_bot_mention,
)


class TestStripBotMention:
    """Tests for removing the bot's own mention."""

    def test_removes_leading_mention(self):
        assert strip_bot_mention("<@UBOT> what is 2+2?", "UBOT") == "what is 2+2?"

    def test_removes_mention_anywhere(self):
        assert strip_bot_mention("hey <@UBOT> help me", "UBOT") == "hey help me"

    def test_keeps_other_mentions(self):
        assert strip_bot_mention("<@UBOT> ask <@UALICE>", "UBOT") == "ask <@UALICE>"

    def test_without_bot_id_strips_leading_mention_only(self):
        assert strip_bot_mention("<@UBOT> ask <@UALICE>") == "ask <@UALICE>"

    def test_mention_only_becomes_empty(self):
        assert strip_bot_mention("<@UBOT>", "UBOT") == ""

    def test_labelled_mention(self):
        assert strip_bot_mention("<@UBOT|claude> hi", "UBOT") == "hi"

    def test_preserves_newlines(self):
        assert strip_bot_mention("<@UBOT> line one\nline two", "UBOT") == "line one\nline two"


class TestHelpers:
    """Tests for channel and mention helpers."""

    def test_direct_message_channel(self):
        assert is_direct_message("D0123")
        assert not is_direct_message("C0123")
        assert not is_direct_message("G0123")

    def test_mentions_user(self):
        assert mentions_user("hi <@UBOT>", "UBOT")
        assert not mentions_user("hi <@UOTHER>", "UBOT")
        assert not mentions_user("hi <@UBOT>", None)


class TestResolveMentions:
    """Tests for replacing user mentions with names."""

    @pytest.mark.asyncio
    async def test_replaces_with_display_name(self, messenger):
        messenger.display_names = {"UALICE": "alice"}

        result = await resolve_user_mentions(
            "ask <@UALICE> and <@UALICE>", messenger.get_user_display_name
        )

        assert result == "ask @alice and @alice"
        assert messenger.lookups == ["UALICE"]

    @pytest.mark.asyncio
    async def test_falls_back_to_label_then_id(self, messenger):
        result = await resolve_user_mentions(
            "<@UBOB|bobby> and <@UCAROL>", messenger.get_user_display_name
        )

        assert result == "@bobby and @UCAROL"

    @pytest.mark.asyncio
    async def test_text_without_mentions_skips_lookups(self, messenger):
        assert await resolve_user_mentions("plain", messenger.get_user_display_name) == "plain"
        assert messenger.lookups == []


class TestPreparePrompt:
    """Tests for the full preprocessing step."""

    @pytest.mark.asyncio
    async def test_strips_bot_and_resolves_others(self, messenger):
        messenger.display_names = {"UALICE": "alice"}

        prompt = await prepare_prompt(
            "<@UBOT> summarize what <@UALICE> said", "UBOT", messenger.get_user_display_name
        )

        assert prompt == "summarize what @alice said"
        assert "UBOT" not in messenger.lookups
