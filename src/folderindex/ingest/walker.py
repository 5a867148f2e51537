"""Folder walker: list the files a strategy should see."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

from folderindex.ingest.base import FileEntry

logger = logging.getLogger(__name__)

IGNORED_DIRECTORY_NAMES: frozenset[str] = frozenset(
    [
        "node_modules",
        ".git",
        ".next",
        "dist",
        "build",
        "coverage",
        "__pycache__",
        ".turbo",
        ".vercel",
        ".cache",
        ".venv",
        "venv",
    ]
)

IGNORED_FILE_NAMES: frozenset[str] = frozenset([".DS_Store", "Thumbs.db"])


def walk_folder(
    root_path: str | Path,
    folder_name: str,
    accept: Callable[[str], bool] | None = None,
) -> list[FileEntry]:
    """Return eligible files under *root_path* in a stable, sorted order.

    Symlinks (files and directories) are skipped, as are ignored directory
    and file names.

    Args:
        root_path: Folder root.
        folder_name: Name the folder is registered under.
        accept: Optional predicate on the absolute file path.
    """
    root = Path(root_path).expanduser().resolve()
    if not root.is_dir():
        logger.warning("[%s] folder root '%s' is not a directory", folder_name, root)
        return []

    entries: list[FileEntry] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d not in IGNORED_DIRECTORY_NAMES and not os.path.islink(os.path.join(dirpath, d))
        )
        for filename in sorted(filenames):
            if filename in IGNORED_FILE_NAMES:
                continue
            abs_path = os.path.join(dirpath, filename)
            if os.path.islink(abs_path):
                continue
            if accept is not None and not accept(abs_path):
                continue
            entries.append(
                FileEntry(
                    folder_name=folder_name,
                    file_path=abs_path,
                    relative_path=Path(abs_path).relative_to(root).as_posix(),
                )
            )
    return entries
