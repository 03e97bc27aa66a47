"""Select the embedding backend named in the configuration."""

from __future__ import annotations

from docretrieval.config import AppConfig
from docretrieval.embedding.base import EmbeddingProvider
from docretrieval.embedding.hashed import HashedEmbeddingProvider
from docretrieval.embedding.remote import OllamaEmbeddingProvider, OpenAIEmbeddingProvider


def create_embedding_provider(config: AppConfig) -> EmbeddingProvider:
    provider = config.embedding_provider
    if provider == "openai":
        return OpenAIEmbeddingProvider(
            config.openai_api_key,
            model=config.model_name,
            dimensions=config.embedding_dimensions,
            api_url=config.embedding_api_url,
            timeout=config.request_timeout,
        )
    if provider == "ollama":
        return OllamaEmbeddingProvider(
            base_url=config.ollama_url,
            model=config.model_name,
            dimensions=config.embedding_dimensions,
            timeout=config.request_timeout,
        )
    if provider == "anthropic":
        return HashedEmbeddingProvider(
            api_key=config.anthropic_api_key,
            model=config.model_name,
            dimensions=config.embedding_dimensions,
            timeout=config.request_timeout,
        )
    if provider == "sentence-transformers":
        # Imported here so torch is only loaded when this backend is selected.
        from docretrieval.embedding.encoder import EncoderConfig, SentenceTransformerProvider

        return SentenceTransformerProvider(EncoderConfig(model_name=config.model_name))
    raise ValueError(f"Unsupported embedding provider: {provider}")
