"""In-memory ANN index over stored embeddings (faiss).

Vectors are L2-normalized before they are added, so the inner product the
index computes is the cosine similarity, and that is the ``score`` on every
result. The index is not told about store mutations: call ``add_folders``
or ``rebuild`` after a folder is re-embedded.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any

import faiss
import numpy as np

from folderindex.db.embeddings import EmbeddingStore
from folderindex.search.similarity import l2_normalize

if TYPE_CHECKING:
    from folderindex.config import SearchCfg
    from folderindex.folders import FolderRegistry

logger = logging.getLogger(__name__)

_PAGE_SIZE = 500
_BACKENDS = ("hnsw", "flat")


@dataclass
class HNSWConfig:
    """Index parameters.

    Attributes:
        m: Links per node; more links give better recall and more memory.
        ef_construction: Candidate list size while building.
        ef_search: Candidate list size while searching.
        score_threshold: Default minimum cosine score for thresholded searches.
        backend: ``"hnsw"``, or ``"flat"`` for an exact linear scan.
    """

    m: int = 32
    ef_construction: int = 200
    ef_search: int = 64
    score_threshold: float = 0.3
    backend: str = "hnsw"

    def __post_init__(self) -> None:
        if self.m < 2:
            raise ValueError("m must be >= 2")
        if self.ef_construction < 1 or self.ef_search < 1:
            raise ValueError("ef_construction and ef_search must be >= 1")
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be between 0 and 1")
        if self.backend not in _BACKENDS:
            raise ValueError(f"backend must be one of {_BACKENDS}")


@dataclass
class SearchResult:
    id: int
    folder_name: str
    file_path: str
    relative_path: str
    content: str | None
    metadata: dict[str, Any]
    score: float


@dataclass
class _Entry:
    id: int
    folder_name: str
    file_path: str
    relative_path: str
    content: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexStats:
    is_initialized: bool
    dimension: int
    total_vectors: int
    config: HNSWConfig
    folder_counts: dict[str, int]


class HNSWSearch:
    """Build and query an ANN index from the embedding store.

    Args:
        store: Source of embedding records.
        config: Index parameters.
    """

    def __init__(self, store: EmbeddingStore, config: HNSWConfig | None = None) -> None:
        self._store = store
        self.config = config or HNSWConfig()
        self._index: faiss.Index | None = None
        self._entries: list[_Entry] = []
        self._dimension = 0
        self._indexed: set[str] = set()

    @classmethod
    def from_config(cls, cfg: SearchCfg, store: EmbeddingStore) -> HNSWSearch:
        return cls(
            store,
            HNSWConfig(
                m=cfg.m,
                ef_construction=cfg.ef_construction,
                ef_search=cfg.ef_search,
                score_threshold=cfg.score_threshold,
                backend=cfg.backend,
            ),
        )

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_folders(self, folder_names: Iterable[str]) -> int:
        """Index every record of the named folders not indexed yet.

        A folder with no records is left unindexed so a later call picks it
        up once it has been embedded.

        Returns:
            Number of vectors added.
        """
        added = 0
        for name in dict.fromkeys(folder_names):
            if name in self._indexed:
                continue
            folder_added, seen = self._add_folder(name)
            added += folder_added
            if seen:
                self._indexed.add(name)
            else:
                logger.warning("[%s] no embeddings to index", name)
        return added

    def add_all_folders(self, registry: FolderRegistry | None = None) -> int:
        """Index every registered folder, or every folder in the store when *registry* is None."""
        if registry is not None:
            names = [f.name for f in registry.get_folders()]
        else:
            names = sorted(self._store.count_by_folder())
        if not names:
            logger.warning("No folders to index")
            return 0
        return self.add_folders(names)

    def _add_folder(self, name: str) -> tuple[int, int]:
        added = seen = skipped = 0
        offset = 0
        while True:
            page = self._store.list_page(name, limit=_PAGE_SIZE, offset=offset)
            vectors: list[list[float]] = []
            entries: list[_Entry] = []
            for rec in page.records:
                seen += 1
                if self._index is None:
                    self._initialize(rec.dim)
                if rec.dim != self._dimension:
                    skipped += 1
                    continue
                vectors.append(rec.vector)
                entries.append(
                    _Entry(
                        id=rec.id,  # type: ignore[arg-type]
                        folder_name=rec.folder_name,
                        file_path=rec.file_path,
                        relative_path=rec.relative_path,
                        content=rec.content,
                        metadata=rec.metadata,
                    )
                )
            if vectors:
                assert self._index is not None
                self._index.add(l2_normalize(np.asarray(vectors, dtype=np.float32)))
                self._entries.extend(entries)
                added += len(vectors)
            if not page.has_more or not page.records:
                break
            offset += len(page.records)

        if skipped:
            logger.warning(
                "[%s] skipped %d records whose dimension differs from the index (%d)",
                name, skipped, self._dimension,
            )
        return added, seen

    def _initialize(self, dimension: int) -> None:
        if dimension < 1:
            raise ValueError(f"Cannot build an index of dimension {dimension}")
        self._dimension = dimension
        if self.config.backend == "flat":
            self._index = faiss.IndexFlatIP(dimension)
            return
        index = faiss.IndexHNSWFlat(dimension, self.config.m, faiss.METRIC_INNER_PRODUCT)
        index.hnsw.efConstruction = self.config.ef_construction
        index.hnsw.efSearch = self.config.ef_search
        self._index = index

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, vector: Sequence[float], k: int = 10) -> list[SearchResult]:
        """Return up to *k* nearest records, best first.

        Returns an empty list when nothing is indexed.

        Raises:
            ValueError: If *vector* does not match the index dimension.
        """
        if self._index is None or not self._entries or k < 1:
            return []
        if len(vector) != self._dimension:
            raise ValueError(
                f"Query vector dimension ({len(vector)}) does not match "
                f"index dimension ({self._dimension})"
            )

        query = l2_normalize(np.asarray(vector, dtype=np.float32).reshape(1, -1))
        if isinstance(self._index, faiss.IndexHNSWFlat):
            self._index.hnsw.efSearch = max(self.config.ef_search, k)
        scores, labels = self._index.search(query, min(k, len(self._entries)))

        results: list[SearchResult] = []
        for score, label in zip(scores[0], labels[0]):
            if label < 0 or label >= len(self._entries):
                continue
            entry = self._entries[label]
            results.append(SearchResult(score=float(score), **asdict(entry)))
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def search_with_threshold(
        self,
        vector: Sequence[float],
        k: int = 100,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Like ``search`` but keep only results scoring at least *threshold*."""
        cutoff = self.config.score_threshold if threshold is None else threshold
        return [r for r in self.search(vector, k) if r.score >= cutoff]

    def search_in_folders(
        self,
        vector: Sequence[float],
        folder_names: Iterable[str],
        k: int = 10,
    ) -> list[SearchResult]:
        """Search, then keep results from *folder_names*; fetches ``3 * k`` candidates."""
        wanted = set(folder_names)
        results = self.search(vector, k * 3)
        return [r for r in results if r.folder_name in wanted][:k]

    def search_in_folders_with_threshold(
        self,
        vector: Sequence[float],
        folder_names: Iterable[str],
        k: int = 100,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        cutoff = self.config.score_threshold if threshold is None else threshold
        wanted = set(folder_names)
        results = self.search(vector, k * 3)
        return [r for r in results if r.folder_name in wanted and r.score >= cutoff][:k]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._index = None
        self._entries = []
        self._dimension = 0
        self._indexed = set()

    def rebuild(
        self,
        config: HNSWConfig | None = None,
        folder_names: Iterable[str] | None = None,
    ) -> int:
        """Drop the index and rebuild it, by default from the folders it already held."""
        names = list(folder_names) if folder_names is not None else sorted(self._indexed)
        self.clear()
        if config is not None:
            self.config = replace(config)
        return self.add_folders(names)

    def stats(self) -> IndexStats:
        return IndexStats(
            is_initialized=self._index is not None,
            dimension=self._dimension,
            total_vectors=len(self._entries),
            config=replace(self.config),
            folder_counts=dict(Counter(e.folder_name for e in self._entries)),
        )

    def is_ready(self) -> bool:
        return self._index is not None and bool(self._entries)

    def set_ef_search(self, ef_search: int) -> None:
        if ef_search < 1:
            raise ValueError("ef_search must be at least 1")
        self.config.ef_search = ef_search

    def set_score_threshold(self, score_threshold: float) -> None:
        if not 0.0 <= score_threshold <= 1.0:
            raise ValueError("score_threshold must be between 0 and 1")
        self.config.score_threshold = score_threshold

    @property
    def indexed_folders(self) -> set[str]:
        return set(self._indexed)
