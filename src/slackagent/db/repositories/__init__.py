"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from slackagent.db.repositories.base import BaseRepository
from slackagent.db.repositories.slack_session import SlackSessionRepository

__all__ = [
    "BaseRepository",
    "SlackSessionRepository",
]
