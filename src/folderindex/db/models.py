"""Domain models for the folderindex database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class TextChunkSnapshot:
    folder_name: str
    file_path: str
    relative_path: str
    format: str
    chunk_index: int
    start_row: int
    start_column: int
    end_row: int
    end_column: int
    start_index: int
    end_index: int
    content: str
    token_count: int
    truncated: bool
    content_hash: str
    id: int | None = None  # set after insert
    created_at: str | None = None


@dataclass
class AstNodeSnapshot:
    folder_name: str
    file_path: str
    relative_path: str
    language: str
    node_path: str
    node_type: str
    symbol_name: str | None
    start_row: int
    start_column: int
    end_row: int
    end_column: int
    start_index: int
    end_index: int
    content: str
    truncated: bool
    content_hash: str
    has_error: bool = False
    id: int | None = None  # set after insert
    created_at: str | None = None


Snapshot = Union[TextChunkSnapshot, AstNodeSnapshot]


@dataclass
class EmbeddingRecord:
    """One embedded document. ``dim`` always equals ``len(vector)``."""

    folder_name: str
    file_path: str
    relative_path: str
    content: str | None
    vector: list[float]
    dim: int
    metadata: dict[str, Any] = field(default_factory=dict)
    snapshot_id: int | None = None
    id: int | None = None
    created_at: str | None = None

    @property
    def stage(self) -> str | None:
        return self.metadata.get("stage")


@dataclass
class EmbeddingPage:
    records: list[EmbeddingRecord]
    total: int
    limit: int
    offset: int
    has_more: bool
