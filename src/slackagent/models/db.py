"""
SQLAlchemy database models for the Slack agent.

One table maps each Slack conversation (session key) to the opaque Claude
agent session id used to resume it.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SlackSession(Base):
    """A Slack conversation and the agent session that continues it."""

    __tablename__ = "slack_sessions"

    session_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    agent_session_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # None until the first turn completes

    # Captured at creation for diagnostics, never mutated
    team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    thread_ts: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    message_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    __table_args__ = (Index("idx_last_active", "last_active_at"),)

    def __repr__(self) -> str:
        return (
            f"<SlackSession(session_key={self.session_key!r}, "
            f"agent_session_id={self.agent_session_id!r}, "
            f"message_count={self.message_count})>"
        )
