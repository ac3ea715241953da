"""Schema migration system for sentinel-memory.

Uses SQLite's built-in ``PRAGMA user_version`` to track schema versions.
Every DDL statement is idempotent, so re-opening an existing store never
destroys data or duplicates the full-text shadow table and its triggers.

Usage::

    from sentinel_memory.migrations import ensure_schema

    conn = sqlite3.connect("memory.db")
    version = ensure_schema(conn)
"""

from __future__ import annotations

import logging
import sqlite3
from typing import NamedTuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Migration definition
# ---------------------------------------------------------------------------


class Migration(NamedTuple):
    """A single schema migration step.

    Attributes:
        version: The target schema version after this migration.
        description: Human-readable description of the change.
        statements: SQL statements to execute.
    """

    version: int
    description: str
    statements: list[str]


# ---------------------------------------------------------------------------
# Full schema (for fresh installs)
# ---------------------------------------------------------------------------

_MEMORIES_TABLE = """
    CREATE TABLE IF NOT EXISTS memories (
        id                     TEXT PRIMARY KEY,
        workspace_id           TEXT    NOT NULL,
        content                TEXT    NOT NULL,
        summary                TEXT,
        type                   TEXT    NOT NULL
                               CHECK (type IN ('auto', 'user', 'conversation')),
        source_conversation_id TEXT,
        source_message_ids     TEXT,
        embedding              BLOB,
        embedding_model        TEXT,
        tags                   TEXT,
        importance             INTEGER NOT NULL DEFAULT 5,
        access_count           INTEGER NOT NULL DEFAULT 0,
        last_accessed_at       TEXT,
        created_at             TEXT    NOT NULL,
        updated_at             TEXT    NOT NULL,
        expires_at             TEXT,
        is_pinned              INTEGER NOT NULL DEFAULT 0,
        metadata               TEXT
    );
"""

_INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_memories_workspace ON memories (workspace_id);",
    "CREATE INDEX IF NOT EXISTS idx_memories_type ON memories (type);",
    "CREATE INDEX IF NOT EXISTS idx_memories_created ON memories (created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_memories_importance ON memories (importance DESC);",
    """
    CREATE INDEX IF NOT EXISTS idx_memories_pinned
    ON memories (is_pinned DESC, importance DESC);
    """,
]

# External-content FTS5 table: the text lives in ``memories`` and the
# triggers below keep the index in the same transaction as each write.
_FTS_TABLE = """
    CREATE VIRTUAL TABLE IF NOT EXISTS memories_fts USING fts5(
        content,
        summary,
        tags,
        content='memories',
        content_rowid='rowid'
    );
"""

_FTS_TRIGGERS: list[str] = [
    """
    CREATE TRIGGER IF NOT EXISTS memories_ai AFTER INSERT ON memories BEGIN
        INSERT INTO memories_fts (rowid, content, summary, tags)
        VALUES (NEW.rowid, NEW.content, NEW.summary, NEW.tags);
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS memories_ad AFTER DELETE ON memories BEGIN
        INSERT INTO memories_fts (memories_fts, rowid, content, summary, tags)
        VALUES ('delete', OLD.rowid, OLD.content, OLD.summary, OLD.tags);
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS memories_au
    AFTER UPDATE OF content, summary, tags ON memories BEGIN
        INSERT INTO memories_fts (memories_fts, rowid, content, summary, tags)
        VALUES ('delete', OLD.rowid, OLD.content, OLD.summary, OLD.tags);
        INSERT INTO memories_fts (rowid, content, summary, tags)
        VALUES (NEW.rowid, NEW.content, NEW.summary, NEW.tags);
    END;
    """,
]

_SETTINGS_TABLE = """
    CREATE TABLE IF NOT EXISTS memory_settings (
        workspace_id            TEXT PRIMARY KEY,
        auto_extract_enabled    INTEGER NOT NULL DEFAULT 1,
        extraction_model        TEXT,
        embedding_model         TEXT    NOT NULL DEFAULT 'openai/text-embedding-3-small',
        max_memories            INTEGER NOT NULL DEFAULT 1000,
        context_injection_count INTEGER NOT NULL DEFAULT 5,
        similarity_threshold    REAL    NOT NULL DEFAULT 0.7,
        created_at              TEXT    NOT NULL,
        updated_at              TEXT    NOT NULL
    );
"""

_FULL_SCHEMA: list[str] = [
    _MEMORIES_TABLE,
    *_INDEXES,
    _FTS_TABLE,
    *_FTS_TRIGGERS,
    _SETTINGS_TABLE,
]

# ---------------------------------------------------------------------------
# Migration list (incremental upgrades)
# ---------------------------------------------------------------------------

MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Memories, FTS5 shadow index and settings",
        statements=_FULL_SCHEMA,
    ),
]

LATEST_VERSION: int = MIGRATIONS[-1].version


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the current schema version from the database.

    Args:
        conn: An open SQLite connection.

    Returns:
        The ``user_version`` PRAGMA value (``0`` if never set).
    """
    cur = conn.execute("PRAGMA user_version")
    row = cur.fetchone()
    return row[0] if row else 0


def ensure_schema(conn: sqlite3.Connection) -> int:
    """Ensure the database schema is up to date.

    Handles three cases:

    1. **Fresh database** -- ``user_version`` is ``0``.  Every migration is
       applied in order.
    2. **Previously migrated database** -- only migrations whose version
       exceeds the current ``user_version`` are applied.
    3. **Newer database** -- the file was written by a newer release;
       nothing is touched and a warning is logged.

    Each migration runs inside an explicit ``BEGIN``, since ``sqlite3``
    autocommits DDL otherwise.  If a migration fails, its statements and
    the version bump are rolled back together and the next call retries.

    Args:
        conn: An open SQLite connection.

    Returns:
        The schema version after all migrations have been applied.
    """
    current = get_schema_version(conn)

    if current > LATEST_VERSION:
        logger.warning(
            "Database schema version (%d) is newer than this release supports (%d). "
            "Skipping migrations.",
            current,
            LATEST_VERSION,
        )
        return current

    if current == 0:
        logger.debug("Fresh database detected -- creating schema at version %d", LATEST_VERSION)

    for migration in MIGRATIONS:
        if migration.version <= current:
            continue
        logger.info("Applying migration v%d: %s", migration.version, migration.description)
        try:
            conn.execute("BEGIN")
            for stmt in migration.statements:
                conn.execute(stmt)
            conn.execute(f"PRAGMA user_version = {migration.version}")
            conn.commit()
            current = migration.version
        except Exception:
            conn.rollback()
            logger.exception("Migration v%d failed -- rolling back", migration.version)
            raise

    return current


def ensure_settings_row(conn: sqlite3.Connection, workspace_id: str, now: str) -> None:
    """Insert the default settings row for *workspace_id* if it is absent.

    Never overwrites an existing row.
    """
    conn.execute(
        """
        INSERT OR IGNORE INTO memory_settings (workspace_id, created_at, updated_at)
        VALUES (?, ?, ?)
        """,
        (workspace_id, now, now),
    )

