"""Hybrid keyword and semantic search interface."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from docretrieval.config import RankingConfig
from docretrieval.embedding import EmbeddingProvider
from docretrieval.errors import DocumentNotFoundError, EmbeddingError
from docretrieval.index import ranking
from docretrieval.index.storage import SQLiteVectorStore
from docretrieval.models import ChunkRecord, DocumentRecord, SearchResult

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResponse:
    results: List[SearchResult] = field(default_factory=list)
    vector_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """True when the semantic channel failed and only keyword hits were ranked."""
        return self.vector_error is not None


@dataclass(slots=True)
class RelevantContext:
    context: str
    sources: List[Dict[str, Any]]
    degraded: bool = False


def _result_from_row(row: Dict[str, Any], score: float, channel: str) -> SearchResult:
    return SearchResult(
        chunk_id=row["chunk_id"],
        document_id=row["document_id"],
        path=Path(row["path"]),
        title=row["title"] or Path(row["path"]).name,
        chunk_index=row["chunk_index"],
        text=row["content"],
        score=score,
        channel=channel,
        document_type=row["document_type"] or "document",
        category=row["category"] or "general",
        importance=row["importance"],
    )


class HybridSearcher:
    """High-level API combining full-text, fuzzy and vector retrieval."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: SQLiteVectorStore,
        ranking_config: RankingConfig | None = None,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.ranking = ranking_config or RankingConfig()

    def search(self, query: str, *, limit: int = 10, threshold: float = 0.1) -> SearchResponse:
        """Rank chunks for ``query`` using both channels.

        A query-time embedding failure aborts only the vector channel; the
        error is reported on the response next to the keyword results.
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")
        if limit <= 0:
            raise ValueError("limit must be positive")

        keyword_hits = self.keyword_search(query, limit=limit)

        vector_hits: List[SearchResult] = []
        vector_error: Optional[str] = None
        try:
            embedding = self.embedder.embed(query)
        except EmbeddingError as exc:
            LOGGER.error("Vector search failed for query %r: %s", query, exc)
            vector_error = str(exc)
        else:
            vector_hits = self.vector_search(embedding, limit=limit, threshold=threshold)

        results = ranking.combine_results(keyword_hits, vector_hits, limit, self.ranking)
        # Only semantic hits count as accesses; they feed the vector boost.
        self._track_access(vector_hits)
        LOGGER.debug(
            "Search %r: %s keyword, %s vector, %s combined",
            query,
            len(keyword_hits),
            len(vector_hits),
            len(results),
        )
        return SearchResponse(results=results, vector_error=vector_error)

    def keyword_search(self, query: str, *, limit: int = 10) -> List[SearchResult]:
        rows = self.store.keyword_matches(query, trigram_floor=self.ranking.trigram_floor)
        hits = [
            _result_from_row(
                row,
                ranking.keyword_score(
                    row["bm25"], bool(row["substring_match"]), row["trigram"], self.ranking
                ),
                "keyword",
            )
            for row in rows
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[: limit * 2]

    def vector_search(
        self,
        embedding: np.ndarray,
        *,
        limit: int = 10,
        threshold: float | None = 0.1,
        document_id: int | None = None,
        exclude_chunk_id: int | None = None,
        diversify: bool = True,
    ) -> List[SearchResult]:
        """Importance-weighted vector ranking, diversified across categories."""
        rows = self.store.vector_matches(
            embedding,
            threshold=threshold,
            document_id=document_id,
            exclude_chunk_id=exclude_chunk_id,
        )
        candidates = [
            _result_from_row(
                row,
                ranking.enhanced_score(
                    row["similarity"], row["importance"], row["access_count"], self.ranking
                ),
                "vector",
            )
            for row in rows
        ]
        candidates.sort(key=lambda hit: hit.score, reverse=True)
        pool = candidates[: ranking.vector_pool_size(limit, self.ranking)]
        if not diversify:
            return pool[:limit]
        return ranking.apply_diversity_filter(pool, limit, self.ranking)

    def _track_access(self, results: List[SearchResult]) -> None:
        document_ids = {result.document_id for result in results}
        if not document_ids:
            return
        try:
            updated = self.store.record_access(document_ids)
        except sqlite3.Error as exc:
            LOGGER.warning("Failed to update access tracking: %s", exc)
            return
        LOGGER.debug("Updated access tracking for %s documents", updated)

    def get_relevant_context(
        self, query: str, *, max_chunks: int = 5, threshold: float = 0.7
    ) -> RelevantContext:
        """Top chunks for ``query`` as numbered context blocks with their sources."""
        response = self.search(query, limit=max_chunks, threshold=threshold)
        blocks = []
        sources = []
        for position, result in enumerate(response.results, start=1):
            blocks.append(f"[{position}] {result.text}")
            sources.append(
                {
                    "document_path": str(result.path),
                    "document_title": result.title,
                    "chunk_index": result.chunk_index,
                    "score": result.score,
                }
            )
        return RelevantContext(
            context="\n\n".join(blocks), sources=sources, degraded=response.degraded
        )

    def find_similar_chunks(
        self, chunk_id: int, *, limit: int = 5, threshold: float = 0.5
    ) -> List[SearchResult]:
        chunk = self.store.get_chunk(chunk_id)
        if chunk is None or chunk.embedding is None:
            return []
        return self.vector_search(
            chunk.embedding, limit=limit, threshold=threshold, exclude_chunk_id=chunk_id
        )

    def search_within_document(
        self, document_id: int, query: str, *, limit: int = 5
    ) -> List[SearchResult]:
        """Vector ranking restricted to one document's chunks."""
        embedding = self.embedder.embed(query)
        return self.vector_search(
            embedding, limit=limit, threshold=None, document_id=document_id, diversify=False
        )

    def get_document_context(self, document_id: int) -> Tuple[DocumentRecord, List[ChunkRecord]]:
        document = self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document, self.store.get_chunks(document_id)

    def get_chunks_by_document(self, document_id: int) -> List[ChunkRecord]:
        return self.store.get_chunks(document_id)

    def search_stats(self) -> Dict[str, int]:
        return self.store.search_stats()
