"""Persistence for parsed snapshot units (text chunks and AST nodes).

A folder's snapshot set is written once and replaced as a whole:
``replace()`` deletes every row for the folder and inserts the new set in
one transaction.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from folderindex.db.models import AstNodeSnapshot, Snapshot, TextChunkSnapshot
from folderindex.db.schema import SNAPSHOT_TABLES

_TEXT_COLUMNS = (
    "folder_name", "file_path", "relative_path", "format", "chunk_index",
    "start_row", "start_column", "end_row", "end_column", "start_index", "end_index",
    "content", "token_count", "truncated", "content_hash",
)

_AST_COLUMNS = (
    "folder_name", "file_path", "relative_path", "language", "node_path", "node_type",
    "symbol_name", "start_row", "start_column", "end_row", "end_column", "start_index",
    "end_index", "content", "truncated", "has_error", "content_hash",
)

_COLUMNS = {"text": _TEXT_COLUMNS, "symbol": _AST_COLUMNS}


def _table(strategy: str) -> str:
    try:
        return SNAPSHOT_TABLES[strategy]
    except KeyError:
        raise ValueError(f"Unknown chunking strategy '{strategy}'") from None


class SnapshotStore:
    """Data access for the ``text_chunk_snapshots`` and ``ast_node_snapshots`` tables.

    The connection is owned by the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def count(self, folder_name: str, strategy: str) -> int:
        """Return the number of *strategy* snapshots stored for *folder_name*."""
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {_table(strategy)} WHERE folder_name = ?",  # noqa: S608
            (folder_name,),
        ).fetchone()[0]

    def count_by_folder(self, strategy: str) -> dict[str, int]:
        rows = self._conn.execute(
            f"SELECT folder_name, COUNT(*) AS n FROM {_table(strategy)} GROUP BY folder_name"  # noqa: S608
        ).fetchall()
        return {r["folder_name"]: r["n"] for r in rows}

    def replace(
        self,
        folder_name: str,
        strategy: str,
        units: Sequence[Snapshot],
        batch_size: int = 200,
    ) -> int:
        """Delete all of *folder_name*'s snapshots and insert *units* in one transaction.

        Args:
            folder_name: Folder the units belong to.
            strategy: ``"text"`` or ``"symbol"``; selects the table.
            units: Snapshot rows to insert.
            batch_size: Rows per ``executemany`` call.

        Returns:
            Number of rows inserted.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        table = _table(strategy)
        columns = _COLUMNS[strategy]
        placeholders = ",".join("?" * len(columns))
        sql = f"INSERT INTO {table} ({','.join(columns)}) VALUES ({placeholders})"  # noqa: S608

        with self._conn:
            self._conn.execute(f"DELETE FROM {table} WHERE folder_name = ?", (folder_name,))  # noqa: S608
            for start in range(0, len(units), batch_size):
                batch = units[start : start + batch_size]
                self._conn.executemany(
                    sql, [tuple(_value(u, c) for c in columns) for u in batch]
                )
        return len(units)

    def list_text_chunks(self, folder_name: str) -> list[TextChunkSnapshot]:
        """Return *folder_name*'s text chunks ordered by path then chunk index."""
        rows = self._conn.execute(
            "SELECT * FROM text_chunk_snapshots WHERE folder_name = ? "
            "ORDER BY relative_path, chunk_index",
            (folder_name,),
        ).fetchall()
        return [_row_to_text(r) for r in rows]

    def list_ast_nodes(self, folder_name: str) -> list[AstNodeSnapshot]:
        """Return *folder_name*'s AST nodes ordered by path then start offset."""
        rows = self._conn.execute(
            "SELECT * FROM ast_node_snapshots WHERE folder_name = ? "
            "ORDER BY relative_path, start_index",
            (folder_name,),
        ).fetchall()
        return [_row_to_ast(r) for r in rows]

    def list_units(self, folder_name: str, strategy: str) -> list[Snapshot]:
        if strategy == "symbol":
            return list(self.list_ast_nodes(folder_name))
        _table(strategy)
        return list(self.list_text_chunks(folder_name))

    def delete_folder(self, folder_name: str) -> int:
        """Delete every snapshot of *folder_name* from both tables."""
        deleted = 0
        with self._conn:
            for table in SNAPSHOT_TABLES.values():
                cur = self._conn.execute(
                    f"DELETE FROM {table} WHERE folder_name = ?", (folder_name,)  # noqa: S608
                )
                deleted += cur.rowcount
        return deleted


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _value(unit: Snapshot, column: str) -> object:
    value = getattr(unit, column)
    return int(value) if isinstance(value, bool) else value


def _row_to_text(row: sqlite3.Row) -> TextChunkSnapshot:
    return TextChunkSnapshot(
        id=row["id"],
        folder_name=row["folder_name"],
        file_path=row["file_path"],
        relative_path=row["relative_path"],
        format=row["format"],
        chunk_index=row["chunk_index"],
        start_row=row["start_row"],
        start_column=row["start_column"],
        end_row=row["end_row"],
        end_column=row["end_column"],
        start_index=row["start_index"],
        end_index=row["end_index"],
        content=row["content"],
        token_count=row["token_count"],
        truncated=bool(row["truncated"]),
        content_hash=row["content_hash"],
        created_at=row["created_at"],
    )


def _row_to_ast(row: sqlite3.Row) -> AstNodeSnapshot:
    return AstNodeSnapshot(
        id=row["id"],
        folder_name=row["folder_name"],
        file_path=row["file_path"],
        relative_path=row["relative_path"],
        language=row["language"],
        node_path=row["node_path"],
        node_type=row["node_type"],
        symbol_name=row["symbol_name"],
        start_row=row["start_row"],
        start_column=row["start_column"],
        end_row=row["end_row"],
        end_column=row["end_column"],
        start_index=row["start_index"],
        end_index=row["end_index"],
        content=row["content"],
        truncated=bool(row["truncated"]),
        has_error=bool(row["has_error"]),
        content_hash=row["content_hash"],
        created_at=row["created_at"],
    )
