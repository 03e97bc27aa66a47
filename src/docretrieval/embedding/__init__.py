"""Embedding providers."""

from docretrieval.embedding.base import EmbeddingProvider
from docretrieval.embedding.factory import create_embedding_provider

__all__ = ["EmbeddingProvider", "create_embedding_provider"]
