"""Registered folders and the folder-change hook.

The indexing core only reads registrations; adding and removing folders is
the caller's business (the CLI seeds the registry from ``folderindex.yaml``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from folderindex.config import FolderCfg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderRegistration:
    name: str
    root_path: str
    strategy: str | None = None


class FolderRegistry:
    """In-memory map of folder name → FolderRegistration."""

    def __init__(self, folders: Iterable[FolderRegistration] = ()) -> None:
        self._folders: dict[str, FolderRegistration] = {}
        for folder in folders:
            self._folders[folder.name] = folder

    @classmethod
    def from_config(cls, folders: Iterable[FolderCfg]) -> FolderRegistry:
        return cls(
            FolderRegistration(name=f.name, root_path=f.path, strategy=f.strategy)
            for f in folders
        )

    def get_folders(self) -> list[FolderRegistration]:
        return list(self._folders.values())

    def get_folder_by_name(self, name: str) -> FolderRegistration | None:
        return self._folders.get(name)

    def add_folder(self, name: str, root_path: str, strategy: str | None = None) -> FolderRegistration:
        """Register *root_path* under *name*.

        Raises:
            ValueError: If *name* is taken or *root_path* is not a directory.
        """
        if name in self._folders:
            raise ValueError(f"Folder with name '{name}' already exists.")
        root = Path(root_path).expanduser().resolve()
        if not root.is_dir():
            raise ValueError(f"Path '{root_path}' is not a valid directory.")
        registration = FolderRegistration(name=name, root_path=str(root), strategy=strategy)
        self._folders[name] = registration
        return registration

    def remove_folder(self, name: str) -> None:
        self._folders.pop(name, None)

    def __len__(self) -> int:
        return len(self._folders)


class FolderEvents:
    """Synchronous change hook: listeners are called with the changed folder name."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[str], None]] = []

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify_change(self, folder_name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(folder_name)
            except Exception:
                logger.exception("[%s] folder change listener failed", folder_name)


folder_events = FolderEvents()
