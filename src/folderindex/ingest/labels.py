"""Symbol-name inference from a node's first line.

Used when the grammar gives a focus node no ``name`` field (impl blocks,
anonymous exports, the Python main guard).
"""

from __future__ import annotations

import re

_IDENT = r"([A-Za-z_$][A-Za-z0-9_$\-]*)"

_JS_CLASS = re.compile(rf"class\s+{_IDENT}", re.IGNORECASE)
_JS_INTERFACE = re.compile(rf"interface\s+{_IDENT}", re.IGNORECASE)
_JS_ENUM = re.compile(rf"enum\s+{_IDENT}", re.IGNORECASE)
_JS_TYPE = re.compile(rf"type\s+{_IDENT}", re.IGNORECASE)
_JS_FUNCTION = re.compile(rf"function\s*\*?\s+{_IDENT}", re.IGNORECASE)
_JS_ARROW = re.compile(rf"(?:const|let|var)\s+{_IDENT}\s*=\s*(?:async\s+)?(?:function|\()", re.IGNORECASE)
_JS_METHOD = re.compile(rf"{_IDENT}\s*\(")

_PY_CLASS = re.compile(rf"class\s+{_IDENT}")
_PY_DEF = re.compile(rf"def\s+{_IDENT}")

_RUST_PATTERNS: dict[str, re.Pattern[str]] = {
    "function_item": re.compile(rf"fn\s+{_IDENT}"),
    "struct_item": re.compile(rf"struct\s+{_IDENT}"),
    "enum_item": re.compile(rf"enum\s+{_IDENT}"),
    "trait_item": re.compile(rf"trait\s+{_IDENT}"),
    "impl_item": re.compile(rf"impl(?:\s*<[^>]+>)?\s+{_IDENT}"),
    "mod_item": re.compile(rf"mod\s+{_IDENT}"),
}

MAIN_GUARD_NAME = "__main__ guard"


def infer_symbol_name(language: str, node_type: str, snippet: str) -> str | None:
    """Guess the declared name from the first non-empty line of *snippet*."""
    stripped = snippet.strip()
    if not stripped:
        return None
    header = " ".join(stripped.splitlines()[0].split())
    if not header:
        return None

    if language in ("javascript", "typescript", "tsx"):
        return _infer_js_like(header, node_type)
    if language == "python":
        return _infer_python(header, node_type)
    if language == "rust":
        return _infer_rust(header, node_type)
    return None


def _infer_js_like(header: str, node_type: str) -> str | None:
    for keyword, pattern in (
        ("class ", _JS_CLASS),
        ("interface ", _JS_INTERFACE),
        ("enum ", _JS_ENUM),
        ("type ", _JS_TYPE),
    ):
        if keyword in header.lower():
            return _match(pattern, header)

    if "function" in header.lower() or "function" in node_type:
        if name := _match(_JS_FUNCTION, header):
            return name

    if re.search(r"\b(?:const|let|var)\s+", header):
        if name := _match(_JS_ARROW, header):
            return name

    if node_type in ("method_definition", "method_signature"):
        return _match(_JS_METHOD, header)
    return None


def _infer_python(header: str, node_type: str) -> str | None:
    if "__name__" in header and "__main__" in header:
        return MAIN_GUARD_NAME
    if header.startswith("@"):
        return None
    if node_type == "class_definition" and header.startswith("class "):
        return _match(_PY_CLASS, header)
    if node_type == "function_definition" and "def" in header:
        return _match(_PY_DEF, header)
    return None


def _infer_rust(header: str, node_type: str) -> str | None:
    pattern = _RUST_PATTERNS.get(node_type)
    if pattern is None and header.startswith("fn "):
        pattern = _RUST_PATTERNS["function_item"]
    return _match(pattern, header) if pattern is not None else None


def _match(pattern: re.Pattern[str], value: str) -> str | None:
    match = pattern.search(value)
    return match.group(1) if match else None
