"""Tests for HNSWSearch."""

from __future__ import annotations

import pytest

from folderindex.config import SearchCfg
from folderindex.db.embeddings import EmbeddingStore
from folderindex.db.models import EmbeddingRecord
from folderindex.folders import FolderRegistration, FolderRegistry
from folderindex.search.hnsw import HNSWConfig, HNSWSearch

VECTORS = {
    "x.txt": [1.0, 0.0, 0.0],
    "near-x.txt": [0.9, 0.1, 0.0],
    "y.txt": [0.0, 1.0, 0.0],
    "z.txt": [0.0, 0.0, 1.0],
}


def _record(folder: str, rel: str, vector: list[float]) -> EmbeddingRecord:
    return EmbeddingRecord(
        folder_name=folder,
        file_path=f"/{folder}/{rel}",
        relative_path=rel,
        content=f"content of {rel}",
        vector=vector,
        dim=len(vector),
        metadata={"stage": "initial", "label": rel},
    )


@pytest.fixture
def store(tmp_db):
    s = EmbeddingStore(tmp_db)
    s.insert_batch("docs", [_record("docs", rel, v) for rel, v in VECTORS.items()])
    s.insert_batch("notes", [_record("notes", "note.txt", [0.95, 0.0, 0.05])])
    return s


@pytest.fixture(params=["hnsw", "flat"])
def index(request, store):
    search = HNSWSearch(store, HNSWConfig(backend=request.param))
    search.add_folders(["docs", "notes"])
    return search


# --- config ---

@pytest.mark.parametrize(
    "kwargs",
    [{"m": 1}, {"ef_search": 0}, {"ef_construction": 0}, {"score_threshold": 1.5}, {"backend": "annoy"}],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        HNSWConfig(**kwargs)


def test_from_config(store):
    search = HNSWSearch.from_config(SearchCfg(backend="flat", ef_search=16, score_threshold=0.4), store)
    assert search.config.backend == "flat"
    assert search.config.ef_search == 16
    assert search.config.score_threshold == 0.4


# --- empty index ---

def test_empty_index_returns_no_results(tmp_db):
    search = HNSWSearch(EmbeddingStore(tmp_db))
    assert search.search([1.0, 0.0, 0.0]) == []
    assert search.search_with_threshold([1.0, 0.0, 0.0]) == []
    assert not search.is_ready()


def test_folder_without_records_is_not_marked_indexed(tmp_db):
    store = EmbeddingStore(tmp_db)
    search = HNSWSearch(store)
    assert search.add_folders(["later"]) == 0
    assert search.indexed_folders == set()

    store.insert_batch("later", [_record("later", "a.txt", [1.0, 0.0])])
    assert search.add_folders(["later"]) == 1
    assert search.indexed_folders == {"later"}


# --- search ---

def test_search_ranks_by_cosine(index):
    results = index.search([1.0, 0.0, 0.0], k=3)

    assert [r.relative_path for r in results] == ["x.txt", "note.txt", "near-x.txt"]
    assert results[0].score == pytest.approx(1.0, abs=1e-5)
    assert all(a.score >= b.score for a, b in zip(results, results[1:]))
    assert results[0].content == "content of x.txt"
    assert results[0].metadata["label"] == "x.txt"
    assert results[0].folder_name == "docs"


def test_search_k_larger_than_index(index):
    assert len(index.search([0.0, 1.0, 0.0], k=50)) == 5


def test_search_non_positive_k(index):
    assert index.search([1.0, 0.0, 0.0], k=0) == []


def test_search_dimension_mismatch_raises(index):
    with pytest.raises(ValueError, match="does not match index dimension"):
        index.search([1.0, 0.0])


def test_search_with_threshold(index):
    results = index.search_with_threshold([1.0, 0.0, 0.0], k=2, threshold=0.5)
    assert len(results) <= 2
    assert all(r.score >= 0.5 for r in results)

    strict = index.search_with_threshold([0.0, 1.0, 0.0], k=10, threshold=0.9)
    assert [r.relative_path for r in strict] == ["y.txt"]


def test_search_with_default_threshold(index):
    index.set_score_threshold(0.99)
    results = index.search_with_threshold([0.0, 0.0, 1.0])
    assert [r.relative_path for r in results] == ["z.txt"]


def test_search_in_folders(index):
    results = index.search_in_folders([1.0, 0.0, 0.0], ["notes"], k=5)
    assert [r.relative_path for r in results] == ["note.txt"]

    docs = index.search_in_folders_with_threshold([1.0, 0.0, 0.0], ["docs"], k=5, threshold=0.5)
    assert [r.relative_path for r in docs] == ["x.txt", "near-x.txt"]


# --- maintenance ---

def test_stats(index):
    stats = index.stats()
    assert stats.is_initialized
    assert stats.dimension == 3
    assert stats.total_vectors == 5
    assert stats.folder_counts == {"docs": 4, "notes": 1}


def test_add_folders_skips_indexed(index):
    assert index.add_folders(["docs"]) == 0
    assert index.stats().total_vectors == 5


def test_mismatched_dimension_is_skipped(store, caplog):
    store.insert_batch("odd", [_record("odd", "flat.txt", [1.0, 0.0])])
    search = HNSWSearch(store)
    search.add_folders(["docs", "odd"])

    assert search.stats().total_vectors == 4
    assert "dimension differs" in caplog.text


def test_clear_and_rebuild(index):
    index.clear()
    assert not index.is_ready()
    assert index.rebuild(folder_names=["notes"]) == 1

    assert index.rebuild(HNSWConfig(backend="flat")) == 1
    assert index.config.backend == "flat"
    assert index.indexed_folders == {"notes"}


def test_add_all_folders(store):
    search = HNSWSearch(store)
    assert search.add_all_folders() == 5
    assert search.indexed_folders == {"docs", "notes"}


def test_add_all_folders_from_registry(store):
    search = HNSWSearch(store)
    registry = FolderRegistry([FolderRegistration("notes", "/notes")])
    assert search.add_all_folders(registry) == 1
    assert search.add_all_folders(FolderRegistry()) == 0


def test_setters_validate(index):
    with pytest.raises(ValueError):
        index.set_ef_search(0)
    with pytest.raises(ValueError):
        index.set_score_threshold(-0.1)
    index.set_ef_search(8)
    assert index.config.ef_search == 8
