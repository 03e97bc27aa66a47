"""Service object wiring storage, embedding, indexing, search and watching."""

from __future__ import annotations

import logging
from pathlib import Path

from docretrieval.classification import DocumentClassifier
from docretrieval.config import AppConfig
from docretrieval.embedding import EmbeddingProvider, create_embedding_provider
from docretrieval.index.indexer import Indexer
from docretrieval.index.search import HybridSearcher
from docretrieval.index.storage import SQLiteVectorStore
from docretrieval.index.watcher import DocumentWatcher
from docretrieval.ingestion.parser import DocumentParser

LOGGER = logging.getLogger(__name__)


class RetrievalRuntime:
    """Owns one store connection and the components built on top of it.

    Construct it with :meth:`from_config` at process start, call
    :meth:`start` to begin watching, and :meth:`close` (or leave the
    ``with`` block) at shutdown.
    """

    def __init__(
        self,
        config: AppConfig,
        store: SQLiteVectorStore,
        embedder: EmbeddingProvider,
        *,
        parser: DocumentParser | None = None,
        classifier: DocumentClassifier | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.embedder = embedder
        self.indexer = Indexer(
            store,
            embedder,
            parser or DocumentParser(),
            classifier or DocumentClassifier(),
            chunk_chars=config.chunk_chars,
            overlap=config.overlap,
            insert_batch_size=config.insert_batch_size,
            watch_root=config.watch_path,
        )
        self.searcher = HybridSearcher(embedder, store, config.ranking)
        self.watcher = DocumentWatcher(self.indexer, config.watch_path, max_depth=config.watch_depth)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        embedder: EmbeddingProvider | None = None,
        base_dir: Path | None = None,
    ) -> "RetrievalRuntime":
        embedder = embedder or create_embedding_provider(config)
        db_path = config.resolve_db_path(base_dir)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        store = SQLiteVectorStore(db_path, dimension=embedder.dimension)
        LOGGER.info(
            "Using %s embeddings (%s, %s dimensions) with database %s",
            embedder.name,
            config.model_name,
            embedder.dimension,
            db_path,
        )
        return cls(config, store, embedder)

    def start(self) -> bool:
        return self.watcher.start()

    def close(self) -> None:
        self.watcher.stop()
        self.store.close()

    def __enter__(self) -> "RetrievalRuntime":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
