"""Session persistence and expiry."""

from slackagent.sessions.cleanup import SessionCleanupWorker
from slackagent.sessions.store import (
    SessionMetadata,
    SessionStats,
    SessionStore,
)

__all__ = [
    "SessionCleanupWorker",
    "SessionMetadata",
    "SessionStats",
    "SessionStore",
]
