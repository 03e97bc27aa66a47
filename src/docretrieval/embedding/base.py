"""Embedding provider interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Sequence

import numpy as np

from docretrieval.errors import EmbeddingError

LOGGER = logging.getLogger(__name__)

HEALTH_CHECK_TEXT = "test"


class EmbeddingProvider(ABC):
    """Produces fixed-dimension float32 vectors for text.

    Backends raise :class:`EmbeddingError` on any failure and never fall back
    to another backend on their own.
    """

    name = "base"

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector this provider returns."""

    @abstractmethod
    def _embed_many(self, texts: list[str]) -> Sequence[Sequence[float]]:
        """Backend call; returns one vector per input text, in order."""

    def embed_batch(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return a ``(len(texts), dimension)`` float32 matrix."""
        items = list(texts)
        if not items:
            return np.zeros((0, self.dimension), dtype="float32")
        try:
            vectors = self._embed_many(items)
        except EmbeddingError:
            raise
        except Exception as exc:
            LOGGER.error("Failed to generate embeddings with %s: %s", self.name, exc)
            raise EmbeddingError(f"{self.name} embedding failed: {exc}") from exc
        return self._validate(vectors, len(items))

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def health_check(self) -> bool:
        """Embed a canary string and report whether it worked."""
        try:
            self.embed(HEALTH_CHECK_TEXT)
        except EmbeddingError as exc:
            LOGGER.error("Embedding service connection test failed: %s", exc)
            return False
        return True

    def _validate(self, vectors: Sequence[Sequence[float]], expected: int) -> np.ndarray:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"{self.name} returned {len(vectors)} embeddings for {expected} texts"
            )
        try:
            matrix = np.asarray(vectors, dtype="float32")
        except ValueError as exc:
            raise EmbeddingError(f"{self.name} returned ragged embeddings") from exc
        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise EmbeddingError(
                f"{self.name} returned embeddings of shape {matrix.shape}, "
                f"expected dimension {self.dimension}"
            )
        return matrix
