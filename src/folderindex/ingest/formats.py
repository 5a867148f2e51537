"""Text format detection for the flat text strategy."""

from __future__ import annotations

from pathlib import PurePath

_FORMAT_BY_EXTENSION: dict[str, str] = {
    ".md": "markdown",
    ".mdx": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
    ".text": "text",
    ".json": "json",
    ".jsonc": "json",
    ".json5": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".xhtml": "xml",
    ".svg": "xml",
    ".csv": "csv",
    ".tsv": "csv",
    ".ini": "ini",
    ".cfg": "ini",
    ".conf": "ini",
    ".log": "log",
}

# Files recognised by name, with or without an extension.
_KNOWN_TEXT_FILES: dict[str, str] = {
    "readme": "markdown",
    "changelog": "markdown",
    "license": "text",
    "makefile": "text",
    "dockerfile": "text",
    ".gitignore": "text",
    ".dockerignore": "text",
    ".npmignore": "text",
    ".prettierrc": "json",
    ".eslintrc": "json",
    ".babelrc": "json",
    ".editorconfig": "ini",
}


def detect_text_format(path: str) -> str | None:
    """Return the text format of *path*, or None if it is not a supported text file.

    Examples:
        "docs/guide.md"   -> "markdown"
        "LICENSE"         -> "text"
        ".env.production" -> "env"
        "main.py"         -> None
    """
    p = PurePath(path)
    name = p.name.lower()
    if name == ".env" or name.startswith(".env."):
        return "env"

    ext = p.suffix.lower()
    if ext in _FORMAT_BY_EXTENSION:
        return _FORMAT_BY_EXTENSION[ext]

    if name in _KNOWN_TEXT_FILES:
        return _KNOWN_TEXT_FILES[name]
    return _KNOWN_TEXT_FILES.get(p.stem.lower())
