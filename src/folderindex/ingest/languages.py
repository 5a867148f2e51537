"""tree-sitter grammars for the symbol strategy.

Parsers are cached per thread: files are parsed in worker threads and a
tree-sitter Parser must not be shared between threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from functools import lru_cache
from pathlib import PurePath

import tree_sitter_css
import tree_sitter_html
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_rust
import tree_sitter_typescript
from tree_sitter import Language, Parser

_LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".js": "javascript",
    ".cjs": "javascript",
    ".mjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
    ".rs": "rust",
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".less": "css",
    ".html": "html",
    ".htm": "html",
}

# tree_sitter_typescript ships two grammars and no plain language().
_GRAMMARS: dict[str, Callable[[], object]] = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "python": tree_sitter_python.language,
    "rust": tree_sitter_rust.language,
    "css": tree_sitter_css.language,
    "html": tree_sitter_html.language,
}

SUPPORTED_LANGUAGES: tuple[str, ...] = tuple(_GRAMMARS)

_local = threading.local()


def detect_language(path: str) -> str | None:
    """Return the language name for *path* by extension, or None."""
    return _LANGUAGE_BY_EXTENSION.get(PurePath(path).suffix.lower())


@lru_cache(maxsize=None)
def get_language(name: str) -> Language:
    try:
        grammar = _GRAMMARS[name]
    except KeyError:
        raise ValueError(f"Unsupported language '{name}'") from None
    return Language(grammar())


def get_parser(name: str) -> Parser:
    """Return this thread's Parser for *name*, creating it on first use."""
    parsers: dict[str, Parser] | None = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}
    if name not in parsers:
        parsers[name] = Parser(get_language(name))
    return parsers[name]
