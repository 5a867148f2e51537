"""Turn snapshot units into embeddable documents.

Each document is a short header (path, format, position) followed by the
unit's content; the header gives the embedding model the file context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from folderindex.db.models import AstNodeSnapshot, Snapshot, TextChunkSnapshot

MAX_LABEL_LENGTH = 50

STAGE_INITIAL = "initial"


@dataclass
class Document:
    snapshot_id: int | None
    file_path: str
    relative_path: str
    content: str  # header + content, what gets embedded or summarized
    original_content: str
    format: str  # text format or language
    label: str
    metadata: dict[str, Any] = field(default_factory=dict)


def make_label(content: str) -> str:
    """First 50 characters with whitespace collapsed, ``...`` when content was cut."""
    label = " ".join(content[:MAX_LABEL_LENGTH].split())
    return f"{label}..." if len(content) > MAX_LABEL_LENGTH else label


def build_documents(units: list[Snapshot]) -> list[Document]:
    return [_text_document(u) if isinstance(u, TextChunkSnapshot) else _ast_document(u) for u in units]


def _span(unit: Snapshot) -> str:
    return f"({unit.start_row},{unit.start_column})-({unit.end_row},{unit.end_column})"


def _text_document(chunk: TextChunkSnapshot) -> Document:
    label = make_label(chunk.content)
    content = "\n".join(
        [
            f"Path: {chunk.relative_path}",
            f"Format: {chunk.format}",
            f"Chunk: {chunk.chunk_index}",
            f"Label: {label}",
            f"Span: {_span(chunk)}",
            f"Content: {chunk.content}",
        ]
    )
    return Document(
        snapshot_id=chunk.id,
        file_path=chunk.file_path,
        relative_path=chunk.relative_path,
        content=content,
        original_content=chunk.content,
        format=chunk.format,
        label=label,
        metadata={
            "type": "text-chunk",
            "format": chunk.format,
            "chunk_index": chunk.chunk_index,
            "label": label,
        },
    )


def _ast_document(node: AstNodeSnapshot) -> Document:
    label = node.symbol_name or make_label(node.content)
    content = "\n".join(
        [
            f"Path: {node.relative_path}",
            f"Language: {node.language}",
            f"Node: {node.node_type}",
            f"Symbol: {node.symbol_name or '-'}",
            f"Span: {_span(node)}",
            f"Content: {node.content}",
        ]
    )
    return Document(
        snapshot_id=node.id,
        file_path=node.file_path,
        relative_path=node.relative_path,
        content=content,
        original_content=node.content,
        format=node.language,
        label=label,
        metadata={
            "type": "ast-node",
            "language": node.language,
            "node_type": node.node_type,
            "symbol_name": node.symbol_name,
            "node_path": node.node_path,
            "label": label,
        },
    )
