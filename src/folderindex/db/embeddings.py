"""Embedding record persistence.

Records are immutable once written. Revising a folder's embeddings means
deleting the superseded stage and inserting the replacement set. Every bulk
write reports the touched folder through the optional ``on_change`` hook.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Sequence

from folderindex.db.models import EmbeddingPage, EmbeddingRecord
from folderindex.db.vectors import blob_to_vector, vector_to_blob

logger = logging.getLogger(__name__)

# Stays well below SQLITE_MAX_VARIABLE_NUMBER on every SQLite build.
_MAX_DELETE_BATCH = 500

_SELECT = (
    "SELECT id, folder_name, file_path, relative_path, snapshot_id, content, "
    "embedding, dim, metadata, created_at FROM embeddings"
)


class EmbeddingStore:
    """Data access layer for the ``embeddings`` table.

    Args:
        conn: Open connection with the schema initialised
            (see folderindex.db.schema.initialize).
        on_change: Called with the folder name after every bulk insert or
            delete that touched at least one row.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._conn = conn
        self._on_change = on_change

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_batch(
        self,
        folder_name: str,
        records: Sequence[EmbeddingRecord],
        batch_size: int = 50,
    ) -> int:
        """Insert *records* for *folder_name* in a single transaction.

        Returns:
            Number of rows inserted.

        Raises:
            ValueError: If a record's ``dim`` does not match its vector length.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if not records:
            return 0

        rows = []
        for rec in records:
            if rec.dim != len(rec.vector):
                raise ValueError(
                    f"Record for {rec.relative_path} has dim={rec.dim} "
                    f"but a vector of length {len(rec.vector)}"
                )
            rows.append(
                (
                    folder_name,
                    rec.file_path,
                    rec.relative_path,
                    rec.snapshot_id,
                    rec.content,
                    vector_to_blob(rec.vector),
                    rec.dim,
                    json.dumps(rec.metadata),
                )
            )

        with self._conn:
            for start in range(0, len(rows), batch_size):
                self._conn.executemany(
                    """
                    INSERT INTO embeddings
                        (folder_name, file_path, relative_path, snapshot_id,
                         content, embedding, dim, metadata)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows[start : start + batch_size],
                )
        self._notify(folder_name)
        return len(rows)

    def delete_stage(
        self,
        folder_name: str,
        stage: str,
        batch_size: int = _MAX_DELETE_BATCH,
    ) -> int:
        """Delete every record of *folder_name* whose ``metadata.stage`` is *stage*.

        Returns:
            Number of rows deleted.
        """
        batch_size = max(1, min(batch_size, _MAX_DELETE_BATCH))
        ids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM embeddings "
                "WHERE folder_name = ? AND json_extract(metadata, '$.stage') = ?",
                (folder_name, stage),
            ).fetchall()
        ]
        if not ids:
            return 0

        deleted = 0
        with self._conn:
            for start in range(0, len(ids), batch_size):
                batch = ids[start : start + batch_size]
                placeholders = ",".join("?" * len(batch))
                cur = self._conn.execute(
                    f"DELETE FROM embeddings WHERE id IN ({placeholders})",  # noqa: S608
                    batch,
                )
                deleted += cur.rowcount
        logger.debug("[%s] deleted %d '%s' embeddings", folder_name, deleted, stage)
        self._notify(folder_name)
        return deleted

    def delete_folder(self, folder_name: str) -> int:
        """Delete every record of *folder_name*. Returns the number of rows deleted."""
        with self._conn:
            cur = self._conn.execute(
                "DELETE FROM embeddings WHERE folder_name = ?", (folder_name,)
            )
        if cur.rowcount:
            self._notify(folder_name)
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_page(self, folder_name: str, limit: int, offset: int = 0) -> EmbeddingPage:
        """Return one page of *folder_name*'s records ordered by id.

        Raises:
            ValueError: If ``limit < 1`` or ``offset < 0``.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")

        total = self.count(folder_name)
        rows = self._conn.execute(
            f"{_SELECT} WHERE folder_name = ? ORDER BY id LIMIT ? OFFSET ?",
            (folder_name, limit, offset),
        ).fetchall()
        records = [_row_to_record(r) for r in rows]
        return EmbeddingPage(
            records=records,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(records) < total,
        )

    def count(self, folder_name: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM embeddings WHERE folder_name = ?", (folder_name,)
        ).fetchone()[0]

    def count_by_folder(self) -> dict[str, int]:
        """Return ``{folder_name: record_count}`` for every folder with records."""
        rows = self._conn.execute(
            "SELECT folder_name, COUNT(*) AS n FROM embeddings GROUP BY folder_name"
        ).fetchall()
        return {r["folder_name"]: r["n"] for r in rows}

    def has_embeddings(self, folder_name: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM embeddings WHERE folder_name = ? LIMIT 1", (folder_name,)
        ).fetchone()
        return row is not None

    def _notify(self, folder_name: str) -> None:
        if self._on_change is not None:
            self._on_change(folder_name)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_record(row: sqlite3.Row) -> EmbeddingRecord:
    dim = row["dim"]
    return EmbeddingRecord(
        id=row["id"],
        folder_name=row["folder_name"],
        file_path=row["file_path"],
        relative_path=row["relative_path"],
        snapshot_id=row["snapshot_id"],
        content=row["content"],
        vector=blob_to_vector(row["embedding"], dim).tolist(),
        dim=dim,
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )
