"""
Slack session repository.

Row-level operations on the slack_sessions table. Each method issues a single
statement; callers own the transaction and any cross-call serialization.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from slackagent.db.repositories.base import BaseRepository
from slackagent.models.db import SlackSession

logger = logging.getLogger(__name__)


class SlackSessionRepository(BaseRepository[SlackSession]):
    """Repository for SlackSession model."""

    def __init__(self, session: Session):
        super().__init__(SlackSession, session)

    def get_by_key(self, session_key: str) -> Optional[SlackSession]:
        """
        Get a session record by its session key.

        Args:
            session_key: Derived conversation key

        Returns:
            SlackSession if found, None otherwise
        """
        return self.get(session_key)

    def set_agent_session_id(
        self, session_key: str, agent_session_id: str, now: datetime
    ) -> bool:
        """
        Store the agent session id and record one more turn.

        Returns:
            True if a row was updated, False if the key no longer exists
        """
        result = self.session.execute(
            update(SlackSession)
            .where(SlackSession.session_key == session_key)
            .values(
                agent_session_id=agent_session_id,
                last_active_at=now,
                message_count=SlackSession.message_count + 1,
            )
        )
        return result.rowcount > 0

    def record_activity(self, session_key: str, now: datetime) -> bool:
        """
        Bump last activity and the turn counter without touching the agent session id.

        Returns:
            True if a row was updated, False if the key no longer exists
        """
        result = self.session.execute(
            update(SlackSession)
            .where(SlackSession.session_key == session_key)
            .values(
                last_active_at=now,
                message_count=SlackSession.message_count + 1,
            )
        )
        return result.rowcount > 0

    def delete_by_key(self, session_key: str) -> bool:
        """
        Delete a session record.

        Returns:
            True if a row was deleted
        """
        result = self.session.execute(
            delete(SlackSession).where(SlackSession.session_key == session_key)
        )
        return result.rowcount > 0

    def delete_inactive_since(self, cutoff: datetime) -> int:
        """
        Delete every record whose last activity is older than cutoff.

        Args:
            cutoff: Records with last_active_at strictly before this are removed

        Returns:
            Number of records deleted
        """
        result = self.session.execute(
            delete(SlackSession).where(SlackSession.last_active_at < cutoff)
        )
        return result.rowcount

    def count_active_since(self, since: datetime) -> int:
        """Count records with activity after the given time."""
        return self.session.scalar(
            select(func.count())
            .select_from(SlackSession)
            .where(SlackSession.last_active_at > since)
        )
