"""
Session store schema initialization.

Schema setup runs on every process start and must be idempotent. Earlier
deployments stored full conversation transcripts in this table; that shape
cannot express an opaque agent session handle, so any table that does not
match the current column set is dropped and recreated empty instead of being
converted column by column.
"""

import enum
import logging

from sqlalchemy import Engine, inspect

from slackagent.models.db import Base, SlackSession

logger = logging.getLogger(__name__)

# Column that only existed in the transcript-storing layout
LEGACY_TRANSCRIPT_COLUMN = "conversation_history"


class SchemaAction(str, enum.Enum):
    """What initialize_schema did to the sessions table."""

    CREATED = "created"  # Table did not exist
    REBUILT = "rebuilt"  # Legacy layout dropped and recreated
    UNCHANGED = "unchanged"  # Table already current


def _current_columns() -> set[str]:
    return {column.name for column in SlackSession.__table__.columns}


def is_legacy_layout(existing_columns: set[str]) -> bool:
    """
    Decide whether an existing sessions table predates the current schema.

    Args:
        existing_columns: Column names found in the database

    Returns:
        True if the table holds transcripts or lacks any current column
    """
    if LEGACY_TRANSCRIPT_COLUMN in existing_columns:
        return True
    return not _current_columns().issubset(existing_columns)


def initialize_schema(engine: Engine) -> SchemaAction:
    """
    Create or migrate the sessions table.

    Args:
        engine: Engine bound to the session database

    Returns:
        SchemaAction describing the change made
    """
    table = SlackSession.__table__
    inspector = inspect(engine)

    if not inspector.has_table(table.name):
        Base.metadata.create_all(bind=engine)
        logger.info(f"Created {table.name} table")
        return SchemaAction.CREATED

    existing_columns = {col["name"] for col in inspector.get_columns(table.name)}
    if is_legacy_layout(existing_columns):
        logger.warning(
            f"Detected legacy {table.name} layout "
            f"(columns: {sorted(existing_columns)}); dropping and recreating table"
        )
        table.drop(bind=engine)
        Base.metadata.create_all(bind=engine)
        logger.info(f"Rebuilt {table.name} table with current schema")
        return SchemaAction.REBUILT

    # Tables created before the activity index existed
    for index in table.indexes:
        index.create(bind=engine, checkfirst=True)

    logger.debug(f"{table.name} schema is up to date")
    return SchemaAction.UNCHANGED
