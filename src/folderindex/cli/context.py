"""Shared wiring for CLI commands: config, database and services."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from folderindex.cli.errors import err_config
from folderindex.config import FolderIndexConfig, load_config
from folderindex.db.connection import Database
from folderindex.db.embeddings import EmbeddingStore
from folderindex.db.snapshots import SnapshotStore
from folderindex.errors import ConfigurationError
from folderindex.folders import FolderRegistry, folder_events
from folderindex.ingest.snapshotter import Snapshotter

console = Console()


@dataclass
class Runtime:
    cfg: FolderIndexConfig
    conn: sqlite3.Connection
    registry: FolderRegistry
    snapshots: SnapshotStore
    embeddings: EmbeddingStore
    snapshotter: Snapshotter

    def close(self) -> None:
        self.conn.close()


def load_config_or_exit() -> FolderIndexConfig:
    try:
        return load_config()
    except ConfigurationError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db_path(cfg: FolderIndexConfig, db: Path | None) -> Path:
    return db if db is not None else Path(cfg.db_path)


def open_db(db_path: Path) -> sqlite3.Connection:
    return Database(db_path).open()


def open_runtime(cfg: FolderIndexConfig, db_path: Path) -> Runtime:
    conn = open_db(db_path)
    snapshots = SnapshotStore(conn)
    return Runtime(
        cfg=cfg,
        conn=conn,
        registry=FolderRegistry.from_config(cfg.folders),
        snapshots=snapshots,
        embeddings=EmbeddingStore(conn, on_change=folder_events.notify_change),
        snapshotter=Snapshotter(
            snapshots, cfg.chunking, batch_size=cfg.embedding.snapshot_batch_size
        ),
    )
