"""Database schema for the vaultsync SQLite record store.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Database initialization (init_db)
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Accounts; a user's id is the owner of their records
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    device_id TEXT NOT NULL,
    created_at TEXT NOT NULL
);

-- Encrypted metadata records; rows are tombstoned, never deleted
CREATE TABLE IF NOT EXISTS metadata_records (
    owner TEXT NOT NULL,
    id TEXT NOT NULL,
    payload TEXT NOT NULL,
    version INTEGER NOT NULL CHECK (version >= 1),
    last_modified_at TEXT NOT NULL,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (owner, id)
);
CREATE INDEX IF NOT EXISTS idx_metadata_records_owner ON metadata_records(owner);

-- Last successful sync per owner
CREATE TABLE IF NOT EXISTS sync_state (
    owner TEXT PRIMARY KEY,
    last_sync_at TEXT NOT NULL
);
"""


def init_db(conn: sqlite3.Connection, db_path: Path) -> None:
    """Initialize the database schema.

    Args:
        conn: Database connection (autocommit mode).
        db_path: Path to the database file (for permissions).
    """
    conn.executescript(SCHEMA)

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    elif row[0] != SCHEMA_VERSION:
        logger.info(f"Schema version {row[0]} -> {SCHEMA_VERSION}")
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

    # Owner read/write only; the file holds password hashes
    try:
        os.chmod(db_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set secure permissions: {e}")
