"""Chunking strategy interface and helpers shared by all strategies.

A strategy is anything with ``accepts(path)`` and ``produce_units(entry)``;
strategies are looked up by name with ``get_strategy()`` rather than
subclassing a common base.

Token counting uses a 4-chars-per-token approximation; no external
tokenizer dependency is required.
"""

from __future__ import annotations

import hashlib
import math
from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from folderindex.errors import ParseError

if TYPE_CHECKING:
    from folderindex.config import ChunkingCfg
    from folderindex.db.models import Snapshot

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class FileEntry:
    """One eligible file inside a registered folder."""

    folder_name: str
    file_path: str  # absolute
    relative_path: str  # POSIX-style, relative to the folder root


@runtime_checkable
class ChunkingStrategy(Protocol):
    name: str

    def accepts(self, path: str) -> bool:
        """Return True if *path* is a file this strategy can split."""

    def produce_units(self, entry: FileEntry) -> list[Snapshot]:
        """Split *entry* into snapshot units.

        Raises:
            ParseError: If the file cannot be read or parsed.
        """


def get_strategy(name: str, cfg: ChunkingCfg) -> ChunkingStrategy:
    """Return the chunking strategy registered under *name* (``text`` or ``symbol``)."""
    from folderindex.ingest.symbol_chunker import SymbolChunker
    from folderindex.ingest.text_chunker import TextChunker

    if name == "text":
        return TextChunker(
            max_tokens=cfg.max_tokens,
            overlap_tokens=cfg.overlap_tokens,
            prefer_natural_boundaries=cfg.prefer_natural_boundaries,
        )
    if name == "symbol":
        return SymbolChunker(
            max_text_length=cfg.max_text_length,
            top_level_only=cfg.top_level_only,
        )
    raise ValueError(f"Unknown chunking strategy '{name}'")


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(len / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def content_hash(file_path: str) -> str:
    """SHA-256 hex digest of *file_path*.

    Only the path is hashed, so editing a file does not change its hash.
    """
    return hashlib.sha256(file_path.encode("utf-8")).hexdigest()


def read_text(path: str) -> str:
    """Read *path* as UTF-8.

    Raises:
        ParseError: If the file is unreadable or not valid UTF-8.
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(path, str(exc)) from exc


class PositionLookup:
    """Map character offsets in *text* to zero-based (row, column) pairs."""

    def __init__(self, text: str) -> None:
        self._line_offsets = [0]
        start = text.find("\n")
        while start != -1:
            self._line_offsets.append(start + 1)
            start = text.find("\n", start + 1)

    def to_position(self, index: int) -> tuple[int, int]:
        row = max(0, bisect_right(self._line_offsets, index) - 1)
        return row, index - self._line_offsets[row]
