"""Agent backends.

Usage:
    from slackagent.agent import ClaudeAgentBackend

    backend = ClaudeAgentBackend.from_settings(settings)
    async for event in backend.query("hello", resume_session_id=None):
        ...
"""

from slackagent.agent.base import (
    AgentBackend,
    AgentEvent,
    ContentDelta,
    QueryCompleted,
    SessionAnnounced,
)
from slackagent.agent.claude import ClaudeAgentBackend, classify_agent_error

__all__ = [
    "AgentBackend",
    "AgentEvent",
    "ClaudeAgentBackend",
    "ContentDelta",
    "QueryCompleted",
    "SessionAnnounced",
    "classify_agent_error",
]
