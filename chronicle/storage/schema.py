"""Database schema for chronicle SQLite storage.

Contains:
- Schema DDL (SCHEMA)
- Schema version marker (SCHEMA_VERSION)
- Table allowlist (ALLOWED_TABLES, validate_table_name)
- Database initialization (init_db)

Migrations are out of scope: the version row is written once at first
bootstrap and never updated.
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Allowed table names for SQL queries (security: prevents SQL injection via table names)
ALLOWED_TABLES = frozenset(
    {
        "timeline_events",
        "full_details",
        "memories",
        "entities",
        "entity_versions",
        "relations",
        "schema_version",
    }
)


def validate_table_name(table: str) -> str:
    """Validate table name against allowlist to prevent SQL injection.

    Raises:
        ValueError: If table name is not in allowlist
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at INTEGER NOT NULL,
    description TEXT
);

-- Timeline events (primary temporal table)
CREATE TABLE IF NOT EXISTS timeline_events (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,   -- ms since epoch
    date TEXT NOT NULL,           -- UTC YYYY-MM-DD of timestamp
    type TEXT NOT NULL,
    namespace TEXT,
    title TEXT,
    metadata TEXT,                -- JSON, inline
    detail_key TEXT,              -- full_details.key once expanded
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_timeline_date ON timeline_events(date);
CREATE INDEX IF NOT EXISTS idx_timeline_timestamp ON timeline_events(timestamp);
CREATE INDEX IF NOT EXISTS idx_timeline_type ON timeline_events(type);
CREATE INDEX IF NOT EXISTS idx_timeline_namespace ON timeline_events(namespace);
CREATE INDEX IF NOT EXISTS idx_timeline_date_type ON timeline_events(date, type);

-- Detail blobs (lazy, off the query path)
CREATE TABLE IF NOT EXISTS full_details (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,           -- JSON
    created_at INTEGER NOT NULL,
    accessed_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_full_details_accessed ON full_details(accessed_at);

-- Ephemeral key/value memories
CREATE TABLE IF NOT EXISTS memories (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,          -- JSON
    namespace TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    expires_at INTEGER            -- NULL = never expires
);
CREATE INDEX IF NOT EXISTS idx_memories_namespace ON memories(namespace);
CREATE INDEX IF NOT EXISTS idx_memories_expires ON memories(expires_at);

-- Entities (name is unique across all types)
CREATE TABLE IF NOT EXISTS entities (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE,
    properties TEXT NOT NULL,     -- JSON object
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(type);

-- Entity property history
CREATE TABLE IF NOT EXISTS entity_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id TEXT NOT NULL,
    version INTEGER NOT NULL,
    properties TEXT NOT NULL,     -- JSON snapshot after the change
    changed_by TEXT NOT NULL,
    changed_at INTEGER NOT NULL,
    change_reason TEXT,
    UNIQUE (entity_id, version),
    FOREIGN KEY (entity_id) REFERENCES entities(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_entity_versions_changed_at ON entity_versions(changed_at);

-- Directed relations between entities
CREATE TABLE IF NOT EXISTS relations (
    id TEXT PRIMARY KEY,
    from_entity_id TEXT NOT NULL,
    relation_type TEXT NOT NULL,
    to_entity_id TEXT NOT NULL,
    properties TEXT,              -- JSON object
    created_at INTEGER NOT NULL,
    FOREIGN KEY (from_entity_id) REFERENCES entities(id) ON DELETE CASCADE,
    FOREIGN KEY (to_entity_id) REFERENCES entities(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_rel_from ON relations(from_entity_id);
CREATE INDEX IF NOT EXISTS idx_rel_to ON relations(to_entity_id);
CREATE INDEX IF NOT EXISTS idx_rel_type ON relations(relation_type);
CREATE INDEX IF NOT EXISTS idx_rel_from_type ON relations(from_entity_id, relation_type);
CREATE INDEX IF NOT EXISTS idx_rel_to_type ON relations(to_entity_id, relation_type);
"""


def init_db(conn: sqlite3.Connection, db_path: Path, now: int) -> None:
    """Create the schema if absent and write the version marker once.

    Safe to run on every open: every statement is idempotent.

    Args:
        conn: Autocommit connection to the database.
        db_path: Path to the database file (for permissions).
        now: Current time in ms, recorded as the marker's applied_at.
    """
    conn.executescript(SCHEMA)

    cur = conn.execute(
        "INSERT OR IGNORE INTO schema_version (version, applied_at, description) VALUES (?, ?, ?)",
        (SCHEMA_VERSION, now, "Initial schema creation"),
    )
    if cur.rowcount:
        logger.info(f"Bootstrapped chronicle schema v{SCHEMA_VERSION} at {db_path}")

    # Owner read/write only
    try:
        os.chmod(db_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set secure permissions: {e}")


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Highest schema version recorded, or 0 for an uninitialized file."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0
