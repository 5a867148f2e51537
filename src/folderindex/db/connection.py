"""SQLite connection layer."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from folderindex.db.schema import initialize

# Folder jobs persist concurrently; wait this long for the write lock.
DEFAULT_BUSY_TIMEOUT_MS = 5000


class Database:
    """Per-project SQLite database holding snapshots and embeddings.

    Args:
        db_path: Path to the SQLite file. Missing parent directories are
            created on connect.
        busy_timeout_ms: How long a writer waits for a locked database.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection with row access by column name and return it.

        ``check_same_thread`` is off: files are parsed in worker threads,
        but every write happens on the event loop thread.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and bring the schema up to date."""
        conn = self.connect()
        initialize(conn)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
