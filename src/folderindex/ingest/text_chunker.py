"""Flat text chunker: token-bounded windows that prefer natural boundaries.

Window size is ``max_tokens * 4`` characters. When a window does not reach
the end of the file, its end is pulled back to the last paragraph break,
sentence end, line break or space found in the final 20 % of the window.
Consecutive windows overlap by ``overlap_tokens * 4`` characters and the
next window starts on a word boundary when one is within 50 characters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from folderindex.db.models import TextChunkSnapshot
from folderindex.ingest.base import (
    CHARS_PER_TOKEN,
    FileEntry,
    PositionLookup,
    content_hash,
    estimate_tokens,
    read_text,
)
from folderindex.ingest.formats import detect_text_format

_SENTENCE_END_RE = re.compile(r"[.!?]\s")
_BOUNDARY_WINDOW = 0.2
_MAX_WORD_SKIP = 50


@dataclass
class TextSpan:
    index: int
    start_index: int
    end_index: int
    start_row: int
    start_column: int
    end_row: int
    end_column: int
    content: str
    token_count: int
    truncated: bool  # True unless the span reaches the end of the text


class TextChunker:
    """Split text files into overlapping, token-bounded windows.

    Default: 1000 tokens / 100 tokens overlap.
    """

    name = "text"

    def __init__(
        self,
        max_tokens: int = 1_000,
        overlap_tokens: int = 100,
        prefer_natural_boundaries: bool = True,
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if not 0 <= overlap_tokens < max_tokens:
            raise ValueError("overlap_tokens must be in [0, max_tokens)")
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.prefer_natural_boundaries = prefer_natural_boundaries

    def accepts(self, path: str) -> bool:
        return detect_text_format(path) is not None

    def produce_units(self, entry: FileEntry) -> list[TextChunkSnapshot]:
        fmt = detect_text_format(entry.file_path)
        if fmt is None:
            return []
        content = read_text(entry.file_path)
        digest = content_hash(entry.file_path)
        return [
            TextChunkSnapshot(
                folder_name=entry.folder_name,
                file_path=entry.file_path,
                relative_path=entry.relative_path,
                format=fmt,
                chunk_index=span.index,
                start_row=span.start_row,
                start_column=span.start_column,
                end_row=span.end_row,
                end_column=span.end_column,
                start_index=span.start_index,
                end_index=span.end_index,
                content=span.content,
                token_count=span.token_count,
                truncated=span.truncated,
                content_hash=digest,
            )
            for span in self.split(content)
        ]

    def split(self, content: str) -> list[TextSpan]:
        """Split *content* into spans. Empty or whitespace-only text yields no spans."""
        if not content.strip():
            return []

        max_chars = self.max_tokens * CHARS_PER_TOKEN
        overlap_chars = self.overlap_tokens * CHARS_PER_TOKEN
        length = len(content)
        positions = PositionLookup(content)
        spans: list[TextSpan] = []

        start = 0
        index = 0
        while start < length:
            end = min(start + max_chars, length)
            if end < length and self.prefer_natural_boundaries:
                end = _find_natural_boundary(content, start, end, max_chars)

            text = content[start:end]
            start_row, start_column = positions.to_position(start)
            end_row, end_column = positions.to_position(end)
            spans.append(
                TextSpan(
                    index=index,
                    start_index=start,
                    end_index=end,
                    start_row=start_row,
                    start_column=start_column,
                    end_row=end_row,
                    end_column=end_column,
                    content=text,
                    token_count=estimate_tokens(text),
                    truncated=end < length,
                )
            )

            if end >= length:
                break
            start = max(start + 1, end - overlap_chars)
            if self.prefer_natural_boundaries:
                start = _adjust_start_to_word_boundary(content, start)
            index += 1

        return spans


def _find_natural_boundary(content: str, start: int, target_end: int, max_chars: int) -> int:
    """Return the best break point in ``(search_start, target_end]``, else *target_end*."""
    search_start = max(start, target_end - int(max_chars * _BOUNDARY_WINDOW))

    paragraph = content.rfind("\n\n", 0, target_end)
    if paragraph > search_start:
        return paragraph + 2

    last_sentence = -1
    for match in _SENTENCE_END_RE.finditer(content, search_start, min(target_end + 1, len(content))):
        if match.start() >= target_end:
            break
        last_sentence = match.start() + 1
    if last_sentence > search_start:
        return last_sentence

    line = content.rfind("\n", 0, target_end)
    if line > search_start:
        return line + 1

    space = content.rfind(" ", 0, target_end)
    if space > search_start:
        return space + 1

    return target_end


def _adjust_start_to_word_boundary(content: str, start: int) -> int:
    if start == 0 or content[start - 1].isspace():
        return start

    boundary = len(content)
    next_space = content.find(" ", start)
    if next_space != -1:
        boundary = min(boundary, next_space + 1)
    next_newline = content.find("\n", start)
    if next_newline != -1:
        boundary = min(boundary, next_newline + 1)

    if boundary - start > _MAX_WORD_SKIP:
        return start
    return boundary
