"""Tests for the HTTP and hashed embedding backends and the provider factory."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import pytest

from docretrieval.config import AppConfig
from docretrieval.embedding import create_embedding_provider
from docretrieval.embedding.hashed import (
    ANTHROPIC_MESSAGES_URL,
    HashedEmbeddingProvider,
    hash_embedding,
)
from docretrieval.embedding.remote import OllamaEmbeddingProvider, OpenAIEmbeddingProvider
from docretrieval.errors import EmbeddingError


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestOpenAIEmbeddingProvider:
    """Hosted API backend."""

    def test_single_request_per_batch(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"index": 1, "embedding": [0.0, 1.0, 0.0]},
                        {"index": 0, "embedding": [1.0, 0.0, 0.0]},
                    ]
                },
            )

        provider = OpenAIEmbeddingProvider(
            "sk-test", model="text-embedding-3-small", dimensions=3, client=_client(handler)
        )

        matrix = provider.embed_batch(["first", "second"])

        assert len(requests) == 1
        assert requests[0].headers["Authorization"] == "Bearer sk-test"
        assert json.loads(requests[0].content) == {
            "input": ["first", "second"],
            "model": "text-embedding-3-small",
            "dimensions": 3,
        }
        assert matrix.dtype == np.float32
        np.testing.assert_array_equal(matrix, [[1, 0, 0], [0, 1, 0]])

    def test_empty_batch_makes_no_request(self) -> None:
        handler = MagicMock()
        provider = OpenAIEmbeddingProvider("sk-test", dimensions=3, client=_client(handler))

        assert provider.embed_batch([]).shape == (0, 3)
        handler.assert_not_called()

    def test_missing_api_key(self) -> None:
        provider = OpenAIEmbeddingProvider("", dimensions=3, client=_client(MagicMock()))

        with pytest.raises(EmbeddingError, match="API key"):
            provider.embed("text")

    def test_http_error(self) -> None:
        provider = OpenAIEmbeddingProvider(
            "sk-test",
            dimensions=3,
            client=_client(lambda request: httpx.Response(429, text="rate limited")),
        )

        with pytest.raises(EmbeddingError, match="429"):
            provider.embed("text")

    def test_wrong_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(
            "sk-test",
            dimensions=4,
            client=_client(
                lambda request: httpx.Response(
                    200, json={"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]}
                )
            ),
        )

        with pytest.raises(EmbeddingError, match="expected dimension 4"):
            provider.embed("text")


class TestOllamaEmbeddingProvider:
    """Local model server backend."""

    def test_one_request_per_text_in_order(self) -> None:
        prompts = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url == "http://ollama:11434/api/embeddings"
            body = json.loads(request.content)
            prompts.append(body["prompt"])
            assert body["model"] == "nomic-embed-text"
            return httpx.Response(200, json={"embedding": [float(len(prompts)), 0.0]})

        provider = OllamaEmbeddingProvider(
            base_url="http://ollama:11434/", dimensions=2, client=_client(handler)
        )

        matrix = provider.embed_batch(["a", "b", "c"])

        assert prompts == ["a", "b", "c"]
        np.testing.assert_array_equal(matrix[:, 0], [1.0, 2.0, 3.0])

    def test_connection_error_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OllamaEmbeddingProvider(dimensions=2, client=_client(handler))

        with pytest.raises(EmbeddingError, match="connection refused"):
            provider.embed("text")

    def test_health_check(self) -> None:
        healthy = OllamaEmbeddingProvider(
            dimensions=2,
            client=_client(lambda request: httpx.Response(200, json={"embedding": [1.0, 0.0]})),
        )
        unhealthy = OllamaEmbeddingProvider(
            dimensions=2, client=_client(lambda request: httpx.Response(500, text="boom"))
        )

        assert healthy.health_check() is True
        assert unhealthy.health_check() is False


class TestHashEmbedding:
    def test_deterministic_and_normalized(self) -> None:
        first = hash_embedding("Fernpilot Zertifikat A2", 64)
        second = hash_embedding("Fernpilot Zertifikat A2", 64)

        assert first.dtype == np.float32
        assert first.shape == (64,)
        np.testing.assert_array_equal(first, second)
        assert np.linalg.norm(first) == pytest.approx(1.0, abs=1e-5)

    def test_different_texts_differ(self) -> None:
        assert not np.allclose(hash_embedding("invoice", 32), hash_embedding("drone", 32))

    def test_empty_text_is_zero_vector(self) -> None:
        assert not hash_embedding("", 8).any()


class TestHashedEmbeddingProvider:
    """Backend for providers without an embedding endpoint."""

    def test_without_key_hashes_raw_text(self) -> None:
        handler = MagicMock()
        provider = HashedEmbeddingProvider(dimensions=32, client=_client(handler))

        vector = provider.embed("drone license")

        np.testing.assert_array_equal(vector, hash_embedding("drone license", 32))
        handler.assert_not_called()

    def test_summarizes_before_hashing(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url == ANTHROPIC_MESSAGES_URL
            assert request.headers["x-api-key"] == "key"
            assert request.headers["anthropic-version"] == "2023-06-01"
            body = json.loads(request.content)
            assert body["max_tokens"] == 100
            assert "drone license" in body["messages"][0]["content"]
            return httpx.Response(200, json={"content": [{"type": "text", "text": "aviation"}]})

        provider = HashedEmbeddingProvider(api_key="key", dimensions=32, client=_client(handler))

        np.testing.assert_array_equal(provider.embed("drone license"), hash_embedding("aviation", 32))

    def test_summary_failure_is_raised(self) -> None:
        provider = HashedEmbeddingProvider(
            api_key="key",
            dimensions=32,
            client=_client(lambda request: httpx.Response(401, text="invalid x-api-key")),
        )

        with pytest.raises(EmbeddingError, match="401"):
            provider.embed("text")

    def test_summary_requested_without_key_is_raised(self) -> None:
        handler = MagicMock()
        provider = HashedEmbeddingProvider(summarize=True, dimensions=32, client=_client(handler))

        with pytest.raises(EmbeddingError, match="API key not configured"):
            provider.embed("text")
        handler.assert_not_called()

    def test_unreachable_api_is_raised_not_hashed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = HashedEmbeddingProvider(api_key="key", dimensions=32, client=_client(handler))

        with pytest.raises(EmbeddingError, match="connection refused"):
            provider.embed("text")


class TestCreateEmbeddingProvider:
    """Static backend selection from configuration."""

    def test_openai(self) -> None:
        provider = create_embedding_provider(
            AppConfig(embedding_provider="openai", openai_api_key="sk")
        )

        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.dimension == 1536

    def test_ollama(self) -> None:
        provider = create_embedding_provider(
            AppConfig(embedding_provider="ollama", ollama_url="http://gpu:11434")
        )

        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.base_url == "http://gpu:11434"

    def test_anthropic(self) -> None:
        provider = create_embedding_provider(
            AppConfig(embedding_provider="anthropic", embedding_dimensions=128)
        )

        assert isinstance(provider, HashedEmbeddingProvider)
        assert provider.dimension == 128
        assert provider.summarize is False

    @patch("docretrieval.embedding.encoder.SentenceTransformer")
    def test_sentence_transformers(self, mock_st: MagicMock) -> None:
        mock_st.return_value.get_sentence_embedding_dimension.return_value = 768

        provider = create_embedding_provider(AppConfig(model_name="local-model"))

        assert provider.name == "sentence-transformers"
        assert provider.dimension == 768
        assert mock_st.call_args[0][0] == "local-model"
