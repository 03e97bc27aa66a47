"""Pseudo-embeddings for providers without an embedding endpoint.

Anthropic's API offers generation but no embeddings. This backend optionally
asks the model for a short semantic summary of the text and then spreads the
summary's characters over a fixed-size vector with a few cheap hash-like
functions. It keeps the rest of the pipeline working; retrieval quality is
far below that of a real embedding model.
"""

from __future__ import annotations

import logging

import httpx
import numpy as np

from docretrieval.embedding.base import EmbeddingProvider
from docretrieval.errors import EmbeddingError

LOGGER = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
SUMMARY_PROMPT = (
    "Extract the key semantic concepts and themes from this text in a concise "
    'summary (max 50 words): "{text}"'
)


def hash_embedding(text: str, dimensions: int) -> np.ndarray:
    """Deterministically map text to an L2-normalized vector."""
    vector = np.zeros(dimensions, dtype="float64")
    if text:
        codes = np.fromiter((ord(char) for char in text), dtype="int64", count=len(text))
        positions = np.arange(len(text), dtype="int64")
        np.add.at(vector, (codes * 7 + positions * 11) % dimensions, np.sin(codes * 0.1) * 0.1)
        np.add.at(vector, (codes * 13 + positions * 17) % dimensions, np.cos(codes * 0.1) * 0.1)
        np.add.at(vector, (codes * 19 + positions * 23) % dimensions, np.tan(codes * 0.01) * 0.05)
    magnitude = np.linalg.norm(vector)
    if magnitude > 0:
        vector /= magnitude
    return vector.astype("float32")


class HashedEmbeddingProvider(EmbeddingProvider):
    """Hash-based vectors, optionally of a model-written summary.

    Whether to summarise is decided once, at construction: with an API key
    (or ``summarize=True``) every text goes through the Messages API, and a
    failed or unauthenticated call raises :class:`EmbeddingError` like any
    other backend error, leaving the degraded-mode decision to the indexer
    or searcher. Hashing the raw text after a failed call would silently mix
    two incompatible vector spaces in one index. Without a key, summaries
    are off and the raw text is hashed offline.
    """

    name = "anthropic"

    def __init__(
        self,
        *,
        api_key: str = "",
        model: str = "claude-3-haiku-20240307",
        dimensions: int = 768,
        summarize: bool | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._dimension = dimensions
        self.summarize = bool(api_key) if summarize is None else summarize
        self._client = client or httpx.Client(timeout=timeout)
        if not self.summarize:
            LOGGER.warning(
                "No native embeddings available; using hash-based pseudo-embeddings "
                "of the raw text"
            )

    @property
    def dimension(self) -> int:
        return self._dimension

    def semantic_summary(self, text: str) -> str:
        if not self.api_key:
            raise EmbeddingError("Anthropic API key not configured")
        response = self._client.post(
            ANTHROPIC_MESSAGES_URL,
            headers={"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
            json={
                "model": self.model,
                "max_tokens": 100,
                "messages": [
                    {"role": "user", "content": SUMMARY_PROMPT.format(text=text[:1000])}
                ],
            },
        )
        if response.is_error:
            raise EmbeddingError(
                f"Anthropic API error: {response.status_code} - {response.text}"
            )
        content = response.json().get("content") or []
        summary = content[0].get("text", "") if content else ""
        return summary or text

    def _embed_many(self, texts: list[str]):
        vectors = []
        for text in texts:
            source = self.semantic_summary(text) if self.summarize else text
            vectors.append(hash_embedding(source, self._dimension))
        return vectors
