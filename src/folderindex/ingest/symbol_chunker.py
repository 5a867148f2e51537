"""Symbol chunker: one unit per declaration-level syntax node (tree-sitter).

A focus node spans more than one line and either has a declaration type for
its language, is a Python ``if __name__ == "__main__"`` guard, or belongs
to a markup language (css, html) where every multi-line named node counts.
Non-focus nodes are descended through; with ``top_level_only`` a focus
node's own descendants are never emitted.
"""

from __future__ import annotations

import logging

from tree_sitter import Node

from folderindex.db.models import AstNodeSnapshot
from folderindex.errors import ParseError
from folderindex.ingest.base import FileEntry, PositionLookup, content_hash, read_text
from folderindex.ingest.labels import MAIN_GUARD_NAME, infer_symbol_name
from folderindex.ingest.languages import detect_language, get_parser

logger = logging.getLogger(__name__)

_JS_FOCUS = frozenset(
    [
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "method_definition",
        "arrow_function",
        "function_expression",
        "generator_function",
        "export_statement",
    ]
)

_TS_FOCUS = _JS_FOCUS | frozenset(
    [
        "abstract_class_declaration",
        "interface_declaration",
        "enum_declaration",
        "type_alias_declaration",
        "method_signature",
        "function_signature",
        "ambient_declaration",
    ]
)

FOCUS_TYPES: dict[str, frozenset[str]] = {
    "javascript": _JS_FOCUS,
    "typescript": _TS_FOCUS,
    "tsx": _TS_FOCUS,
    "python": frozenset(["function_definition", "class_definition", "decorated_definition"]),
    "rust": frozenset(
        ["function_item", "struct_item", "enum_item", "trait_item", "impl_item", "mod_item"]
    ),
}

MARKUP_LANGUAGES: frozenset[str] = frozenset(["css", "html"])

# Wrapper node type → field holding the declaration it wraps.
_WRAPPER_FIELDS: dict[str, str] = {
    "decorated_definition": "definition",
    "export_statement": "declaration",
}


class SymbolChunker:
    """Split source files into declaration-level units.

    Args:
        max_text_length: Snippets longer than this are cut and get a ``...`` suffix.
        top_level_only: Emit outermost focus nodes only.
    """

    name = "symbol"

    def __init__(self, max_text_length: int = 512, top_level_only: bool = True) -> None:
        if max_text_length < 1:
            raise ValueError("max_text_length must be >= 1")
        self.max_text_length = max_text_length
        self.top_level_only = top_level_only

    def accepts(self, path: str) -> bool:
        return detect_language(path) is not None

    def produce_units(self, entry: FileEntry) -> list[AstNodeSnapshot]:
        language = detect_language(entry.file_path)
        if language is None:
            return []
        source = read_text(entry.file_path)
        if not source.strip():
            return []

        data = source.encode("utf-8")
        tree = get_parser(language).parse(data)
        root = tree.root_node
        if _only_errors(root):
            raise ParseError(entry.file_path, "syntax tree contains only error nodes")

        to_char = _offset_converter(source, data)
        positions = PositionLookup(source)
        digest = content_hash(entry.file_path)

        units: list[AstNodeSnapshot] = []
        for node, node_path in self._focus_nodes(root, language, ""):
            start = to_char(node.start_byte)
            end = to_char(node.end_byte)
            text = source[start:end]
            truncated = len(text) > self.max_text_length
            snippet = f"{text[: self.max_text_length]}..." if truncated else text
            start_row, start_column = positions.to_position(start)
            end_row, end_column = positions.to_position(end)
            units.append(
                AstNodeSnapshot(
                    folder_name=entry.folder_name,
                    file_path=entry.file_path,
                    relative_path=entry.relative_path,
                    language=language,
                    node_path=node_path,
                    node_type=node.type,
                    symbol_name=_symbol_name(node, language, text),
                    start_row=start_row,
                    start_column=start_column,
                    end_row=end_row,
                    end_column=end_column,
                    start_index=start,
                    end_index=end,
                    content=snippet,
                    truncated=truncated,
                    has_error=node.has_error,
                    content_hash=digest,
                )
            )
        if root.has_error:
            logger.debug("%s parsed with syntax errors", entry.relative_path)
        return units

    def _focus_nodes(self, node: Node, language: str, path: str):
        """Yield ``(node, node_path)`` for focus nodes below *node*, in source order."""
        for index, child in enumerate(node.named_children):
            child_path = f"{path}.{index}" if path else str(index)
            if is_focus_node(language, child):
                yield child, child_path
                if self.top_level_only:
                    continue
                wrapped = _unwrap(child)
                if wrapped is not None:
                    # The wrapper already stands for its declaration.
                    wrapped_index = next(
                        i for i, c in enumerate(child.named_children) if c == wrapped
                    )
                    yield from self._focus_nodes(
                        wrapped, language, f"{child_path}.{wrapped_index}"
                    )
                    continue
            yield from self._focus_nodes(child, language, child_path)


def is_focus_node(language: str, node: Node) -> bool:
    if node.type == "ERROR" or node.start_point[0] >= node.end_point[0]:
        return False
    if language in MARKUP_LANGUAGES:
        return True
    if language == "python" and _is_main_guard(node):
        return True
    return node.type in FOCUS_TYPES.get(language, frozenset())


def _is_main_guard(node: Node) -> bool:
    if node.type != "if_statement":
        return False
    condition = node.child_by_field_name("condition")
    text = (condition or node).text or b""
    return b"__name__" in text and b"__main__" in text


def _unwrap(node: Node) -> Node | None:
    field = _WRAPPER_FIELDS.get(node.type)
    return node.child_by_field_name(field) if field else None


def _symbol_name(node: Node, language: str, text: str) -> str | None:
    if language == "python" and _is_main_guard(node):
        return MAIN_GUARD_NAME

    target = _unwrap(node) or node
    name = target.child_by_field_name("name")
    if name is None and target.type in ("arrow_function", "function_expression"):
        parent = target.parent
        if parent is not None and parent.type == "variable_declarator":
            name = parent.child_by_field_name("name")
    if name is not None and name.text:
        return name.text.decode("utf-8", errors="replace")
    return infer_symbol_name(language, target.type, text)


def _only_errors(root: Node) -> bool:
    if root.type == "ERROR":
        return True
    children = root.named_children
    return bool(children) and all(c.type == "ERROR" for c in children)


def _offset_converter(source: str, data: bytes):
    """Return a function mapping UTF-8 byte offsets in *data* to str offsets.

    *data* must be ``source.encode("utf-8")``. An offset inside a multi-byte
    character maps to that character's index.
    """
    if len(source) == len(data):
        return lambda offset: offset
    table = [0] * (len(data) + 1)
    pos = 0
    for index, char in enumerate(source):
        width = len(char.encode("utf-8"))
        table[pos : pos + width] = [index] * width
        pos += width
    table[pos] = len(source)
    return table.__getitem__
