"""Document indexing pipeline."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from docretrieval.classification import DocumentClassifier
from docretrieval.embedding import EmbeddingProvider
from docretrieval.errors import EmbeddingError
from docretrieval.index.storage import SQLiteVectorStore
from docretrieval.ingestion.parser import DocumentParser
from docretrieval.models import ChunkRecord, DocumentRecord
from docretrieval.utils.files import iter_document_paths

LOGGER = logging.getLogger(__name__)


class IndexStatus(str, Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass(slots=True)
class IndexStats:
    new: int = 0
    changed: int = 0
    unchanged: int = 0
    removed: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: IndexStatus, path: Path) -> None:
        if status is IndexStatus.NEW:
            self.new += 1
        elif status is IndexStatus.CHANGED:
            self.changed += 1
        elif status is IndexStatus.UNCHANGED:
            self.unchanged += 1
        elif status is IndexStatus.REMOVED:
            self.removed += 1
        else:
            self.failed += 1
        self.processed_files.append(path)

    @property
    def total(self) -> int:
        return len(self.processed_files)


class Indexer:
    """Coordinates parsing, embedding, classification and persistence."""

    def __init__(
        self,
        store: SQLiteVectorStore,
        embedder: EmbeddingProvider,
        parser: DocumentParser | None = None,
        classifier: DocumentClassifier | None = None,
        *,
        chunk_chars: int = 1200,
        overlap: int = 150,
        insert_batch_size: int = 50,
        watch_root: Path | None = None,
    ) -> None:
        if insert_batch_size <= 0:
            raise ValueError("insert_batch_size must be positive")
        self.store = store
        self.embedder = embedder
        self.parser = parser or DocumentParser()
        self.classifier = classifier or DocumentClassifier()
        self.chunk_chars = chunk_chars
        self.overlap = overlap
        self.insert_batch_size = insert_batch_size
        self.watch_root = Path(watch_root) if watch_root is not None else None
        self.last_status: Dict[Path, IndexStatus] = {}

    def index_path(self, path: Path) -> Optional[DocumentRecord]:
        """Bring the stored state of one file up to date.

        Returns the stored document, or ``None`` for unsupported files. A file
        whose content hash matches the stored row is returned untouched.
        :class:`~docretrieval.errors.ParseError` propagates to the caller.
        """
        path = Path(path).resolve()
        if not self.parser.is_supported(path):
            LOGGER.debug("Skipping unsupported file: %s", path)
            return None

        fingerprint = self.parser.fingerprint(path)
        existing = self.store.get_document_by_path(path)
        if existing is not None and existing.sha256 == fingerprint.sha256:
            LOGGER.debug("Document unchanged: %s", path)
            self.last_status[path] = IndexStatus.UNCHANGED
            return existing

        LOGGER.info("Processing: %s", path)
        parsed = self.parser.extract(path)
        texts = self.parser.chunk(parsed.text, self.chunk_chars, self.overlap)
        embeddings = self._embed(path, texts)

        document = DocumentRecord(
            path=path,
            title=parsed.title or path.stem,
            sha256=fingerprint.sha256,
            mtime=fingerprint.mtime,
            size=fingerprint.size,
            file_type=fingerprint.file_type,
            meta=parsed.metadata,
        )
        document.apply(self.classifier.classify(document, parsed.text))

        with self.store.transaction():
            document_id = self.store.save_document(document)
            self.store.delete_chunks(document_id)
            stored = self._insert_chunks(document_id, texts, embeddings)

        status = IndexStatus.CHANGED if existing is not None else IndexStatus.NEW
        self.last_status[path] = status
        LOGGER.info(
            "Indexed %s (%s): %s chunks, %s/%s, importance %.2f",
            path.name,
            status.value,
            stored,
            document.document_type,
            document.category,
            document.importance,
        )
        return self.store.get_document(document_id)

    def _embed(self, path: Path, texts: List[str]) -> List[Optional[np.ndarray]]:
        if not texts:
            return []
        try:
            matrix = self.embedder.embed_batch(texts)
        except EmbeddingError as exc:
            LOGGER.warning(
                "Embedding failed for %s; indexing lexical-only (degraded): %s", path, exc
            )
            return [None] * len(texts)
        return list(matrix)

    def _insert_chunks(
        self,
        document_id: int,
        texts: Sequence[str],
        embeddings: Sequence[Optional[np.ndarray]],
    ) -> int:
        """Insert fragments in batches; returns how many were stored.

        A batch that fails as a whole is retried fragment by fragment.
        Indexes are assigned over stored fragments only, so they stay
        contiguous from 0 even when a fragment is dropped.
        """
        next_index = 0
        for start in range(0, len(texts), self.insert_batch_size):
            batch = [
                ChunkRecord(
                    document_id=document_id,
                    index=next_index + offset,
                    text=text,
                    token_count=self.parser.count_tokens(text),
                    embedding=embedding,
                )
                for offset, (text, embedding) in enumerate(
                    zip(
                        texts[start : start + self.insert_batch_size],
                        embeddings[start : start + self.insert_batch_size],
                    )
                )
            ]
            try:
                self.store.insert_chunks(document_id, batch)
            except (sqlite3.Error, ValueError) as exc:
                LOGGER.warning(
                    "Batch insert failed for document %s, inserting chunks one by one: %s",
                    document_id,
                    exc,
                )
            else:
                next_index += len(batch)
                continue

            for chunk in batch:
                chunk.index = next_index
                if self._insert_chunk(document_id, chunk):
                    next_index += 1
        return next_index

    def _insert_chunk(self, document_id: int, chunk: ChunkRecord) -> bool:
        try:
            self.store.insert_chunk(document_id, chunk)
            return True
        except (sqlite3.Error, ValueError) as exc:
            if chunk.embedding is None:
                LOGGER.error("Dropping chunk %s of document %s: %s", chunk.index, document_id, exc)
                return False
            LOGGER.warning(
                "Chunk %s of document %s failed, retrying without embedding: %s",
                chunk.index,
                document_id,
                exc,
            )
        chunk.embedding = None
        try:
            self.store.insert_chunk(document_id, chunk)
            return True
        except (sqlite3.Error, ValueError) as exc:
            LOGGER.error("Dropping chunk %s of document %s: %s", chunk.index, document_id, exc)
            return False

    def remove_path(self, path: Path) -> bool:
        path = Path(path).resolve()
        removed = self.store.delete_document_by_path(path)
        if removed:
            self.last_status[path] = IndexStatus.REMOVED
            LOGGER.info("Removed document: %s", path)
        return removed

    def index(self, paths: Sequence[Path]) -> IndexStats:
        """Index every supported file under the given files and directories."""
        files = list(iter_document_paths([Path(p) for p in paths], self.parser.is_supported))
        if not files:
            LOGGER.warning("No supported documents found")
            return IndexStats()

        stats = IndexStats()
        for path in files:
            try:
                document = self.index_path(path)
            except Exception as exc:
                LOGGER.error("Failed to process %s: %s", path, exc)
                self.last_status[path.resolve()] = IndexStatus.FAILED
                stats.increment(IndexStatus.FAILED, path)
                continue
            if document is not None:
                stats.increment(self.last_status[path.resolve()], path)
        return stats

    def index_directory(self, path: Path) -> IndexStats:
        LOGGER.info("Scanning directory: %s", path)
        stats = self.index([Path(path)])
        LOGGER.info(
            "Scan complete: %s new, %s changed, %s unchanged, %s failed",
            stats.new,
            stats.changed,
            stats.unchanged,
            stats.failed,
        )
        return stats

    def reindex_all(self) -> IndexStats:
        if self.watch_root is None:
            raise ValueError("No watch root configured for reindexing")
        LOGGER.info("Starting full reindex of %s", self.watch_root)
        self.clear_all()
        return self.index_directory(self.watch_root)

    def clear_all(self) -> tuple[int, int]:
        documents, chunks = self.store.clear()
        self.last_status.clear()
        LOGGER.info("Cleared %s documents and %s chunks", documents, chunks)
        return documents, chunks

    def stats(self) -> Dict[str, int]:
        return self.store.stats()

    def get_documents(self, limit: int = 50, offset: int = 0) -> List[DocumentRecord]:
        return self.store.list_documents(limit=limit, offset=offset)

    def get_document(self, document_id: int) -> Optional[DocumentRecord]:
        return self.store.get_document(document_id)
