"""
Database connection management for the session store.

Provides engine construction for the SQLite session database and a session
context manager with commit/rollback handling.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def create_store_engine(database_path: Path, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the SQLite session database.

    The parent directory is created if needed. WAL journaling lets the
    cleanup worker and request handlers read while a write is in progress.

    Args:
        database_path: Path to the SQLite file (":memory:" is not supported)
        echo: Log emitted SQL statements

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    database_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{database_path}",
        echo=echo,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    logger.debug(f"Created session store engine at {database_path}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session, committed on success and rolled
        back on exception

    Example:
        >>> with session_scope(factory) as db:
        >>>     repo = SlackSessionRepository(db)
        >>>     repo.delete("T1-U1-dm")
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection(factory: sessionmaker[Session]) -> bool:
    """
    Check if the session database is reachable.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with session_scope(factory) as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Session database connection failed: {e}")
        return False
