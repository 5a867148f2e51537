"""Forward-only migration runner for the folderindex database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS text_chunk_snapshots (
    id              INTEGER PRIMARY KEY,
    folder_name     TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    relative_path   TEXT NOT NULL,
    format          TEXT NOT NULL,
    chunk_index     INTEGER NOT NULL,
    start_row       INTEGER NOT NULL,
    start_column    INTEGER NOT NULL,
    end_row         INTEGER NOT NULL,
    end_column      INTEGER NOT NULL,
    start_index     INTEGER NOT NULL,
    end_index       INTEGER NOT NULL,
    content         TEXT NOT NULL,
    token_count     INTEGER NOT NULL,
    truncated       INTEGER NOT NULL DEFAULT 0,
    content_hash    TEXT NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS text_chunk_snapshots_folder_idx
    ON text_chunk_snapshots (folder_name);

CREATE TABLE IF NOT EXISTS ast_node_snapshots (
    id              INTEGER PRIMARY KEY,
    folder_name     TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    relative_path   TEXT NOT NULL,
    language        TEXT NOT NULL,
    node_path       TEXT NOT NULL,
    node_type       TEXT NOT NULL,
    symbol_name     TEXT,
    start_row       INTEGER NOT NULL,
    start_column    INTEGER NOT NULL,
    end_row         INTEGER NOT NULL,
    end_column      INTEGER NOT NULL,
    start_index     INTEGER NOT NULL,
    end_index       INTEGER NOT NULL,
    content         TEXT NOT NULL,
    truncated       INTEGER NOT NULL DEFAULT 0,
    has_error       INTEGER NOT NULL DEFAULT 0,
    content_hash    TEXT NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS ast_node_snapshots_folder_idx
    ON ast_node_snapshots (folder_name);

CREATE TABLE IF NOT EXISTS embeddings (
    id              INTEGER PRIMARY KEY,
    folder_name     TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    relative_path   TEXT NOT NULL,
    snapshot_id     INTEGER,
    content         TEXT,
    embedding       BLOB NOT NULL,
    dim             INTEGER NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS embeddings_folder_idx ON embeddings (folder_name);
"""

# Record ids are never reused, so a stale search index cannot point at a
# newer row that took a deleted row's id.
_V2_SQL = """
CREATE TABLE embeddings_v2 (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    folder_name     TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    relative_path   TEXT NOT NULL,
    snapshot_id     INTEGER,
    content         TEXT,
    embedding       BLOB NOT NULL,
    dim             INTEGER NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

INSERT INTO embeddings_v2
    SELECT id, folder_name, file_path, relative_path, snapshot_id, content,
           embedding, dim, metadata, created_at
    FROM embeddings;

DROP TABLE embeddings;
ALTER TABLE embeddings_v2 RENAME TO embeddings;

CREATE INDEX IF NOT EXISTS embeddings_folder_idx ON embeddings (folder_name);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
