"""Tests for the forward-only migration runner."""

from __future__ import annotations

import pytest

from folderindex.db.connection import Database
from folderindex.db.migrations import MIGRATIONS, run_migrations
from folderindex.db.schema import CURRENT_VERSION, initialize, schema_version


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def _columns(conn, table: str) -> set[str]:
    return {r["name"] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert schema_version(conn) == MIGRATIONS[-1][0] == CURRENT_VERSION
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    initialize(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


def test_migration_versions_ascending():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)


# --- Tables created ---

@pytest.mark.parametrize("table", ["text_chunk_snapshots", "ast_node_snapshots", "embeddings"])
def test_run_migrations_creates_table(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_embeddings_columns(tmp_db):
    assert {"folder_name", "file_path", "relative_path", "snapshot_id", "content",
            "embedding", "dim", "metadata", "created_at"} <= _columns(tmp_db, "embeddings")


def test_text_snapshot_span_columns(tmp_db):
    cols = _columns(tmp_db, "text_chunk_snapshots")
    assert {"start_row", "start_column", "end_row", "end_column",
            "start_index", "end_index", "token_count", "truncated", "content_hash"} <= cols


def test_ast_snapshot_columns(tmp_db):
    cols = _columns(tmp_db, "ast_node_snapshots")
    assert {"language", "node_path", "node_type", "symbol_name", "has_error"} <= cols


# --- Upgrades ---

def test_upgrade_from_v1_keeps_embeddings_and_stops_id_reuse(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE schema_version (version INTEGER NOT NULL, "
        "applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
    )
    conn.executescript(MIGRATIONS[0][1])
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.execute(
        "INSERT INTO embeddings (folder_name, file_path, relative_path, embedding, dim) "
        "VALUES ('docs', '/a.txt', 'a.txt', x'0000803f', 1)"
    )
    conn.commit()

    run_migrations(conn)

    rows = conn.execute("SELECT id, relative_path FROM embeddings").fetchall()
    assert [(r["id"], r["relative_path"]) for r in rows] == [(1, "a.txt")]
    assert _columns(conn, "embeddings") >= {"metadata", "created_at"}

    conn.execute("DELETE FROM embeddings")
    conn.execute(
        "INSERT INTO embeddings (folder_name, file_path, relative_path, embedding, dim) "
        "VALUES ('docs', '/b.txt', 'b.txt', x'0000803f', 1)"
    )
    new_id = conn.execute("SELECT id FROM embeddings").fetchone()[0]
    assert new_id == 2
    assert schema_version(conn) == CURRENT_VERSION
    conn.close()
