"""Database schema creation and versioning.

All CREATE TABLE statements for the file cache.
Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("agent_insights.db")

SCHEMA_VERSION = 3

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── Parsed log cache (one row per source file) ────────────────────
CREATE TABLE IF NOT EXISTS file_cache (
    file_path      TEXT PRIMARY KEY,
    agent_type     TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    modified_at    TEXT NOT NULL,
    file_size      INTEGER NOT NULL,
    session_id     TEXT,
    tokens_input   INTEGER,
    tokens_output  INTEGER,
    tokens_cached  INTEGER,
    tokens_total   INTEGER,
    cached_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_file_cache_agent ON file_cache(agent_type);
CREATE INDEX IF NOT EXISTS idx_file_cache_modified ON file_cache(modified_at);
"""


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return any(row[1] == column for row in rows)


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    if await _column_exists(db, table, column):
        return
    await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables and apply additive column upgrades. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info("Schema is up to date (version %s)", current_version)
        return

    logger.info("Running migrations: %s → %s", current_version, SCHEMA_VERSION)

    await db.executescript(_TABLES)

    # Nullable columns added after the first release; older rows read as empty.
    await _ensure_column(db, "file_cache", "tool_calls", "TEXT")
    await _ensure_column(db, "file_cache", "tokens_reasoning", "INTEGER")
    await _ensure_column(db, "file_cache", "tokens_cache_creation", "INTEGER")

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
