"""Tests for SymbolChunker (tree-sitter)."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from folderindex.db.models import AstNodeSnapshot
from folderindex.ingest.base import FileEntry
from folderindex.ingest.labels import MAIN_GUARD_NAME
from folderindex.ingest.symbol_chunker import SymbolChunker, _offset_converter, _only_errors


PYTHON_SOURCE = '''import os


def helper(x):
    return x + 1


@decorator
def decorated():
    pass


class Greeter:
    def greet(self):
        return "hi"

    def wave(self):
        return "wave"


if __name__ == "__main__":
    helper(1)
'''

JS_SOURCE = """export function hello(name) {
  return name;
}

const add = (a, b) => {
  return a + b;
};

const one = 1;
"""

RUST_SOURCE = """struct Point {
    x: i32,
}

impl Point {
    fn new() -> Self {
        Point { x: 0 }
    }
}
"""


def _entry(tmp_path, name: str, text: str) -> FileEntry:
    f = tmp_path / name
    f.write_text(text, encoding="utf-8")
    return FileEntry(folder_name="src", file_path=str(f), relative_path=name)


def test_symbol_default_settings():
    chunker = SymbolChunker()
    assert chunker.max_text_length == 512
    assert chunker.top_level_only is True


def test_symbol_rejects_bad_length():
    with pytest.raises(ValueError):
        SymbolChunker(max_text_length=0)


def test_symbol_accepts_by_language():
    chunker = SymbolChunker()
    assert chunker.accepts("/x/main.py")
    assert chunker.accepts("/x/styles.css")
    assert not chunker.accepts("/x/README.md")


# --- Python ---

def test_python_top_level_units(tmp_path):
    units = SymbolChunker().produce_units(_entry(tmp_path, "app.py", PYTHON_SOURCE))

    assert all(isinstance(u, AstNodeSnapshot) for u in units)
    assert [u.symbol_name for u in units] == ["helper", "decorated", "Greeter", MAIN_GUARD_NAME]
    assert [u.node_type for u in units] == [
        "function_definition", "decorated_definition", "class_definition", "if_statement"
    ]
    assert [u.node_path for u in units] == ["1", "2", "3", "4"]
    assert all(u.language == "python" for u in units)


def test_python_spans_match_source(tmp_path):
    units = SymbolChunker().produce_units(_entry(tmp_path, "app.py", PYTHON_SOURCE))
    helper = units[0]

    assert helper.content == PYTHON_SOURCE[helper.start_index : helper.end_index]
    assert helper.content.startswith("def helper(x):")
    assert (helper.start_row, helper.start_column) == (3, 0)
    assert helper.end_row == 4
    assert helper.truncated is False
    assert helper.has_error is False


def test_python_nested_units(tmp_path):
    chunker = SymbolChunker(top_level_only=False)
    units = chunker.produce_units(_entry(tmp_path, "app.py", PYTHON_SOURCE))

    assert [u.symbol_name for u in units] == [
        "helper", "decorated", "Greeter", "greet", "wave", MAIN_GUARD_NAME
    ]
    greet = units[3]
    assert greet.node_path == "3.1.0"
    assert greet.node_type == "function_definition"


def test_single_line_nodes_are_skipped(tmp_path):
    source = "def one(): return 1\nclass Empty: pass\n"
    assert SymbolChunker().produce_units(_entry(tmp_path, "short.py", source)) == []


def test_long_snippet_is_truncated(tmp_path):
    units = SymbolChunker(max_text_length=20).produce_units(
        _entry(tmp_path, "app.py", PYTHON_SOURCE)
    )
    helper = units[0]
    assert helper.truncated is True
    assert helper.content == "def helper(x):\n    r..."
    assert helper.end_index - helper.start_index > 20


def test_offsets_are_character_based(tmp_path):
    source = "# héllo ünïcode ✓\n\ndef helper(x):\n    return x\n"
    units = SymbolChunker().produce_units(_entry(tmp_path, "uni.py", source))
    assert units[0].start_index == source.index("def helper")
    assert units[0].content == source[units[0].start_index : units[0].end_index]


def test_offset_converter_maps_every_byte_offset():
    source = "aé✓b🙂"
    data = source.encode("utf-8")
    to_char = _offset_converter(source, data)
    for offset in range(len(data) + 1):
        assert to_char(offset) == len(data[:offset].decode("utf-8", errors="ignore"))


def test_offsets_stay_aligned_after_many_non_ascii_lines(tmp_path):
    source = "".join(f"# résumé ✓ {i}\n" for i in range(200)) + "\n\ndef tail(x):\n    return x\n"
    units = SymbolChunker().produce_units(_entry(tmp_path, "long.py", source))
    assert [u.symbol_name for u in units] == ["tail"]
    assert units[0].start_index == source.index("def tail")
    assert units[0].content == source[units[0].start_index : units[0].end_index]


def test_empty_file_yields_nothing(tmp_path):
    assert SymbolChunker().produce_units(_entry(tmp_path, "empty.py", "\n\n")) == []


def test_unsupported_file_yields_nothing(tmp_path):
    assert SymbolChunker().produce_units(_entry(tmp_path, "notes.md", "# hi\n\ntext")) == []


# --- Other languages ---

def test_javascript_export_and_arrow(tmp_path):
    units = SymbolChunker().produce_units(_entry(tmp_path, "index.js", JS_SOURCE))

    assert [(u.node_type, u.symbol_name) for u in units] == [
        ("export_statement", "hello"),
        ("arrow_function", "add"),
    ]


def test_rust_struct_and_impl(tmp_path):
    units = SymbolChunker().produce_units(_entry(tmp_path, "lib.rs", RUST_SOURCE))

    assert [(u.node_type, u.symbol_name) for u in units] == [
        ("struct_item", "Point"),
        ("impl_item", "Point"),
    ]


def test_css_rules_are_units(tmp_path):
    source = ".card {\n  color: red;\n}\n\n.title {\n  margin: 0;\n}\n"
    units = SymbolChunker().produce_units(_entry(tmp_path, "styles.css", source))

    assert len(units) == 2
    assert all(u.language == "css" for u in units)
    assert units[1].content.startswith(".title")


# --- Error handling ---

def test_only_errors_detection():
    error_only = SimpleNamespace(type="program", named_children=[SimpleNamespace(type="ERROR")])
    mixed = SimpleNamespace(
        type="program",
        named_children=[SimpleNamespace(type="ERROR"), SimpleNamespace(type="function_item")],
    )
    assert _only_errors(SimpleNamespace(type="ERROR", named_children=[]))
    assert _only_errors(error_only)
    assert not _only_errors(mixed)
    assert not _only_errors(SimpleNamespace(type="module", named_children=[]))
