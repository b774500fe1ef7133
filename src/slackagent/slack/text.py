"""
Slack message text preprocessing.

Pure transforms applied before a message reaches the orchestrator: the bot's
own mention is removed, and other user mentions become readable names so the
agent sees who was referenced.
"""

import re
from typing import Awaitable, Callable, Optional

# <@U123ABC> or <@U123ABC|display>
MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)(?:\|([^>]*))?>")

NameResolver = Callable[[str], Awaitable[Optional[str]]]


def is_direct_message(channel_id: str) -> bool:
    """Slack direct-message channel ids start with 'D'."""
    return channel_id.startswith("D")


def mentions_user(text: str, user_id: Optional[str]) -> bool:
    """Check whether the text contains a mention of the given user."""
    if not user_id:
        return False
    return any(match.group(1) == user_id for match in MENTION_PATTERN.finditer(text))


def strip_bot_mention(text: str, bot_user_id: Optional[str] = None) -> str:
    """
    Remove the bot's own mention tokens.

    Without a known bot id only a leading mention is removed, which is where
    Slack places it for app_mention events.
    """
    if bot_user_id:
        cleaned = MENTION_PATTERN.sub(
            lambda m: "" if m.group(1) == bot_user_id else m.group(0), text
        )
    else:
        cleaned = re.sub(r"^\s*<@[A-Z0-9]+(?:\|[^>]*)?>", "", text)
    return re.sub(r"[ \t]{2,}", " ", cleaned).strip()


async def resolve_user_mentions(text: str, resolver: NameResolver) -> str:
    """
    Replace remaining <@U…> tokens with @display-name.

    Each distinct user is looked up once. When the resolver has no name the
    label embedded in the token, or the raw user id, is used instead.
    """
    user_ids = {match.group(1) for match in MENTION_PATTERN.finditer(text)}
    if not user_ids:
        return text

    names: dict[str, Optional[str]] = {}
    for user_id in user_ids:
        names[user_id] = await resolver(user_id)

    def replace(match: re.Match) -> str:
        user_id, label = match.group(1), match.group(2)
        return f"@{names.get(user_id) or label or user_id}"

    return MENTION_PATTERN.sub(replace, text)


async def prepare_prompt(
    text: str, bot_user_id: Optional[str], resolver: NameResolver
) -> str:
    """Strip the bot mention and resolve other mentions."""
    return await resolve_user_mentions(strip_bot_mention(text, bot_user_id), resolver)
