"""
Session store.

Durable mapping from Slack conversation (session key) to Claude agent session
id. All operations are serialized through one lock per process; each runs a
single statement in its own transaction. Async callers run these methods in a
worker thread (asyncio.to_thread) so a slow disk never stalls the event loop.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import Engine

from slackagent.config import Settings
from slackagent.db.connection import (
    check_connection,
    create_session_factory,
    create_store_engine,
    session_scope,
)
from slackagent.db.repositories import SlackSessionRepository
from slackagent.db.schema import SchemaAction, initialize_schema

logger = logging.getLogger(__name__)

# Window used to count "active" sessions in get_stats()
ACTIVE_WINDOW = timedelta(hours=1)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SessionMetadata:
    """Slack identifiers captured when a session record is created."""

    team_id: str
    user_id: str
    channel_id: Optional[str] = None
    thread_ts: Optional[str] = None


@dataclass
class SessionStats:
    """Counts of stored sessions."""

    total_sessions: int = 0
    active_sessions: int = 0


class SessionStore:
    """
    Serialized access to the slack_sessions table.

    The store is the only writer of the table and the only state shared
    between concurrent turns.
    """

    def __init__(
        self,
        engine: Engine,
        ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the session store.

        Args:
            engine: Engine bound to the session database
            ttl: Age of last activity after which a record is evicted
            clock: Returns the current UTC time (injectable for tests)
        """
        self.engine = engine
        self.ttl = ttl
        self._clock = clock
        self._factory = create_session_factory(engine)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionStore":
        """Build a store (schema not yet initialized) from application settings."""
        engine = create_store_engine(settings.database_path)
        return cls(engine, ttl=timedelta(seconds=settings.session_ttl_seconds))

    def initialize(self) -> SchemaAction:
        """Create or migrate the schema. Safe to call on every start."""
        with self._lock:
            action = initialize_schema(self.engine)
        logger.info(f"Session store ready at {self.engine.url} (schema {action.value})")
        return action

    def get_or_create(
        self, session_key: str, metadata: SessionMetadata
    ) -> Optional[str]:
        """
        Get the stored agent session id, creating an empty record if needed.

        Args:
            session_key: Derived conversation key
            metadata: Slack identifiers recorded on first creation

        Returns:
            The agent session id, or None when a new agent session must be started
            (no record yet, or a record that never completed a turn)
        """
        with self._lock, session_scope(self._factory) as db:
            repo = SlackSessionRepository(db)
            record = repo.get_by_key(session_key)
            if record is not None:
                if record.agent_session_id:
                    logger.info(
                        f"Found existing session {session_key} "
                        f"-> agent session {record.agent_session_id}"
                    )
                else:
                    logger.info(f"Session {session_key} has no agent session yet")
                return record.agent_session_id or None

            now = self._clock()
            repo.create(
                session_key=session_key,
                agent_session_id=None,
                team_id=metadata.team_id,
                channel_id=metadata.channel_id,
                user_id=metadata.user_id,
                thread_ts=metadata.thread_ts,
                created_at=now,
                last_active_at=now,
                message_count=0,
            )
            logger.info(f"Created new session record: {session_key}")
            return None

    def update_session_id(self, session_key: str, agent_session_id: str) -> None:
        """Store a new agent session id and record one more turn."""
        with self._lock, session_scope(self._factory) as db:
            updated = SlackSessionRepository(db).set_agent_session_id(
                session_key, agent_session_id, self._clock()
            )
        if updated:
            logger.info(f"Updated session {session_key} -> {agent_session_id}")
        else:
            logger.warning(
                f"Session {session_key} vanished before update (likely evicted); "
                f"agent session {agent_session_id} not stored"
            )

    def touch_activity(self, session_key: str) -> None:
        """Record one more turn without changing the agent session id."""
        with self._lock, session_scope(self._factory) as db:
            updated = SlackSessionRepository(db).record_activity(
                session_key, self._clock()
            )
        if not updated:
            logger.debug(f"Session {session_key} not found when recording activity")

    def delete(self, session_key: str) -> None:
        """Remove a session record (no-op if absent)."""
        with self._lock, session_scope(self._factory) as db:
            deleted = SlackSessionRepository(db).delete_by_key(session_key)
        logger.info(f"Deleted session {session_key} (existed={deleted})")

    def exists(self, session_key: str) -> bool:
        """Check whether a record exists for the session key."""
        with self._lock, session_scope(self._factory) as db:
            return SlackSessionRepository(db).get_by_key(session_key) is not None

    def evict_expired(self) -> int:
        """
        Delete records whose last activity is older than the TTL.

        Returns:
            Number of records deleted
        """
        cutoff = self._clock() - self.ttl
        with self._lock, session_scope(self._factory) as db:
            deleted = SlackSessionRepository(db).delete_inactive_since(cutoff)
        if deleted > 0:
            logger.info(f"Evicted {deleted} inactive sessions (inactive since {cutoff})")
        return deleted

    def get_stats(self) -> SessionStats:
        """Count total sessions and sessions active within the last hour."""
        since = self._clock() - ACTIVE_WINDOW
        with self._lock, session_scope(self._factory) as db:
            repo = SlackSessionRepository(db)
            return SessionStats(
                total_sessions=repo.count(),
                active_sessions=repo.count_active_since(since),
            )

    def check_connection(self) -> bool:
        """Return True if the database answers a trivial query."""
        return check_connection(self._factory)

    def close(self) -> None:
        """Dispose of pooled connections."""
        self.engine.dispose()
        logger.debug("Session store closed")
