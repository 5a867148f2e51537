"""Snapshot creation: walk a folder once and persist its units.

A folder's snapshots are built at most once: when units of the folder's
strategy already exist, ``ensure_snapshots`` returns their count without
touching the file system. Concurrent calls for the same folder share one
in-flight build.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass

from folderindex.config import ChunkingCfg
from folderindex.db.models import Snapshot
from folderindex.db.snapshots import SnapshotStore
from folderindex.errors import ParseError
from folderindex.folders import FolderRegistration
from folderindex.ingest.base import ChunkingStrategy, get_strategy
from folderindex.ingest.walker import walk_folder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotResult:
    created: bool
    unit_count: int


class Snapshotter:
    """Build and persist snapshot units for registered folders.

    Args:
        store: Snapshot persistence.
        chunking: Chunking configuration; ``chunking.strategy`` is the
            default for folders that do not name one.
        batch_size: Rows per insert batch.
    """

    def __init__(
        self,
        store: SnapshotStore,
        chunking: ChunkingCfg | None = None,
        batch_size: int = 200,
    ) -> None:
        self._store = store
        self._chunking = chunking or ChunkingCfg()
        self._batch_size = batch_size
        self._lock = threading.Lock()
        self._in_flight: dict[str, asyncio.Future[SnapshotResult]] = {}

    def strategy_for(self, folder: FolderRegistration) -> str:
        return folder.strategy or self._chunking.strategy

    def unit_count(self, folder: FolderRegistration) -> int:
        return self._store.count(folder.name, self.strategy_for(folder))

    def list_units(self, folder: FolderRegistration) -> list[Snapshot]:
        return self._store.list_units(folder.name, self.strategy_for(folder))

    async def ensure_snapshots(self, folder: FolderRegistration) -> SnapshotResult:
        """Return the folder's snapshot count, parsing the folder if it has none.

        Concurrent callers for the same folder await the same build.
        """
        with self._lock:
            future = self._in_flight.get(folder.name)
            if future is None:
                future = asyncio.ensure_future(self._build(folder))
                self._in_flight[folder.name] = future
                future.add_done_callback(
                    lambda done, name=folder.name: self._release(name, done)
                )
        # shield: one caller being cancelled must not cancel the shared build.
        return await asyncio.shield(future)

    def _release(self, name: str, future: asyncio.Future[SnapshotResult]) -> None:
        with self._lock:
            if self._in_flight.get(name) is future:
                del self._in_flight[name]
        if not future.cancelled() and future.exception() is not None:
            logger.debug("[%s] snapshot build failed: %s", name, future.exception())

    async def _build(self, folder: FolderRegistration) -> SnapshotResult:
        strategy_name = self.strategy_for(folder)
        existing = self._store.count(folder.name, strategy_name)
        if existing:
            return SnapshotResult(created=False, unit_count=existing)

        strategy = get_strategy(strategy_name, self._chunking)
        units = await asyncio.to_thread(_parse_folder, folder, strategy)
        count = self._store.replace(folder.name, strategy_name, units, self._batch_size)
        logger.info("[%s] stored %d %s snapshot units", folder.name, count, strategy_name)
        return SnapshotResult(created=True, unit_count=count)


def _parse_folder(folder: FolderRegistration, strategy: ChunkingStrategy) -> list[Snapshot]:
    units: list[Snapshot] = []
    entries = walk_folder(folder.root_path, folder.name, strategy.accepts)
    for entry in entries:
        try:
            units.extend(strategy.produce_units(entry))
        except ParseError as exc:
            logger.warning("[%s] skipping %s: %s", folder.name, entry.relative_path, exc.reason)
    logger.debug("[%s] parsed %d files into %d units", folder.name, len(entries), len(units))
    return units
