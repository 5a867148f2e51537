"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from folderindex.db.migrations import MIGRATIONS, run_migrations

CURRENT_VERSION = MIGRATIONS[-1][0]

SNAPSHOT_TABLES: dict[str, str] = {
    "text": "text_chunk_snapshots",
    "symbol": "ast_node_snapshots",
}


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    run_migrations(conn)


def schema_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 on a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0
