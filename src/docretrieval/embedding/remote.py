"""Embedding backends reached over HTTP."""

from __future__ import annotations

import logging

import httpx

from docretrieval.embedding.base import EmbeddingProvider
from docretrieval.errors import EmbeddingError

LOGGER = logging.getLogger(__name__)


def _raise_for_status(response: httpx.Response, service: str) -> None:
    if response.is_error:
        raise EmbeddingError(f"{service} API error: {response.status_code} - {response.text}")


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Hosted embedding API; a batch is a single request."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        api_url: str = "https://api.openai.com/v1/embeddings",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self._dimension = dimensions
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_many(self, texts: list[str]):
        if not self.api_key:
            raise EmbeddingError("OpenAI API key not configured")
        response = self._client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"input": texts, "model": self.model, "dimensions": self._dimension},
        )
        _raise_for_status(response, "OpenAI")
        items = sorted(response.json()["data"], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Locally hosted model server; one request per text, in order."""

    name = "ollama"

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._dimension = dimensions
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_many(self, texts: list[str]):
        embeddings = []
        for text in texts:
            response = self._client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            _raise_for_status(response, "Ollama")
            embeddings.append(response.json()["embedding"])
        LOGGER.debug("Ollama produced %s embeddings", len(embeddings))
        return embeddings
