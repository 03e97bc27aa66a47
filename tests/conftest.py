"""Shared fixtures: a deterministic offline embedding provider and a temp store."""

from __future__ import annotations

import re
import zlib
from pathlib import Path

import numpy as np
import pytest

from docretrieval.embedding.base import EmbeddingProvider
from docretrieval.errors import EmbeddingError
from docretrieval.index.indexer import Indexer
from docretrieval.index.search import HybridSearcher
from docretrieval.index.storage import SQLiteVectorStore

DIMENSION = 16
_WORD_RE = re.compile(r"\w+")


class FakeEmbeddingProvider(EmbeddingProvider):
    """Bag-of-words vectors: slot 0 holds the word count, the rest word hashes.

    The shared first slot keeps every pair of non-empty texts clearly
    similar, while identical texts score exactly 1.0.
    """

    name = "fake"

    def __init__(self, dimension: int = DIMENSION) -> None:
        self._dimension = dimension
        self.calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_many(self, texts: list[str]):
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            vector = np.zeros(self._dimension, dtype="float32")
            words = _WORD_RE.findall(text.lower())
            vector[0] = len(words)
            for word in words:
                vector[1 + zlib.crc32(word.encode()) % (self._dimension - 1)] += 1
            norm = np.linalg.norm(vector)
            vectors.append(vector / norm if norm else vector)
        return vectors


class FailingEmbeddingProvider(EmbeddingProvider):
    name = "failing"

    def __init__(self, dimension: int = DIMENSION) -> None:
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_many(self, texts: list[str]):
        raise EmbeddingError("embedding service unavailable")


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteVectorStore(tmp_path / "index.db", dimension=DIMENSION)
    yield store
    store.close()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "documents"
    path.mkdir()
    return path


@pytest.fixture
def indexer(store: SQLiteVectorStore, embedder: FakeEmbeddingProvider, docs_dir: Path) -> Indexer:
    return Indexer(store, embedder, watch_root=docs_dir)


@pytest.fixture
def searcher(store: SQLiteVectorStore, embedder: FakeEmbeddingProvider) -> HybridSearcher:
    return HybridSearcher(embedder, store)


@pytest.fixture
def failing_embedder() -> FailingEmbeddingProvider:
    return FailingEmbeddingProvider()
