"""folderindex database layer."""

from folderindex.db.connection import Database
from folderindex.db.embeddings import EmbeddingStore
from folderindex.db.migrations import MIGRATIONS, run_migrations
from folderindex.db.schema import initialize
from folderindex.db.snapshots import SnapshotStore
from folderindex.db.vectors import blob_to_vector, vector_to_blob

__all__ = [
    "Database",
    "EmbeddingStore",
    "SnapshotStore",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "blob_to_vector",
    "vector_to_blob",
]
