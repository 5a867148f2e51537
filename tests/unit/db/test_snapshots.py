"""Tests for SnapshotStore."""

from __future__ import annotations

import pytest

from folderindex.db.models import AstNodeSnapshot, TextChunkSnapshot
from folderindex.db.snapshots import SnapshotStore


def _chunk(rel: str = "a.txt", idx: int = 0, folder: str = "docs", content: str = "hello") -> TextChunkSnapshot:
    return TextChunkSnapshot(
        folder_name=folder,
        file_path=f"/root/{rel}",
        relative_path=rel,
        format="text",
        chunk_index=idx,
        start_row=0,
        start_column=0,
        end_row=0,
        end_column=len(content),
        start_index=0,
        end_index=len(content),
        content=content,
        token_count=2,
        truncated=False,
        content_hash="abc",
    )


def _node(rel: str = "m.py", start: int = 0, folder: str = "src") -> AstNodeSnapshot:
    return AstNodeSnapshot(
        folder_name=folder,
        file_path=f"/root/{rel}",
        relative_path=rel,
        language="python",
        node_path="0",
        node_type="function_definition",
        symbol_name="main",
        start_row=0,
        start_column=0,
        end_row=1,
        end_column=8,
        start_index=start,
        end_index=start + 20,
        content="def main():\n    pass",
        truncated=True,
        content_hash="def",
        has_error=True,
    )


# --- replace / count ---

def test_replace_inserts_and_counts(tmp_db):
    store = SnapshotStore(tmp_db)
    assert store.replace("docs", "text", [_chunk(idx=0), _chunk(idx=1)]) == 2
    assert store.count("docs", "text") == 2
    assert store.count("docs", "symbol") == 0


def test_replace_swaps_whole_set(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("docs", "text", [_chunk(idx=i) for i in range(3)])
    store.replace("docs", "text", [_chunk(content="new")])
    chunks = store.list_text_chunks("docs")
    assert [c.content for c in chunks] == ["new"]


def test_replace_small_batches(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("docs", "text", [_chunk(idx=i) for i in range(7)], batch_size=2)
    assert store.count("docs", "text") == 7


def test_replace_leaves_other_folders(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("docs", "text", [_chunk()])
    store.replace("notes", "text", [_chunk(folder="notes")])
    store.replace("docs", "text", [])
    assert store.count_by_folder("text") == {"notes": 1}


def test_replace_rejects_bad_batch_size(tmp_db):
    with pytest.raises(ValueError, match="batch_size"):
        SnapshotStore(tmp_db).replace("docs", "text", [_chunk()], batch_size=0)


def test_unknown_strategy_raises(tmp_db):
    store = SnapshotStore(tmp_db)
    with pytest.raises(ValueError, match="Unknown chunking strategy"):
        store.count("docs", "pdf")
    with pytest.raises(ValueError):
        store.list_units("docs", "pdf")


# --- reads ---

def test_list_text_chunks_ordered(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("docs", "text", [_chunk("b.txt", 0), _chunk("a.txt", 1), _chunk("a.txt", 0)])
    chunks = store.list_text_chunks("docs")
    assert [(c.relative_path, c.chunk_index) for c in chunks] == [
        ("a.txt", 0), ("a.txt", 1), ("b.txt", 0)
    ]
    assert all(c.id is not None and c.created_at for c in chunks)
    assert chunks[0].truncated is False


def test_list_ast_nodes_round_trips_flags(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("src", "symbol", [_node(start=40), _node(start=0)])
    nodes = store.list_units("src", "symbol")
    assert [n.start_index for n in nodes] == [0, 40]
    assert nodes[0].truncated is True
    assert nodes[0].has_error is True
    assert nodes[0].symbol_name == "main"


def test_delete_folder_clears_both_tables(tmp_db):
    store = SnapshotStore(tmp_db)
    store.replace("mixed", "text", [_chunk(folder="mixed")])
    store.replace("mixed", "symbol", [_node(folder="mixed")])
    assert store.delete_folder("mixed") == 2
    assert store.count("mixed", "text") == 0
    assert store.count("mixed", "symbol") == 0
