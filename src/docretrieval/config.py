"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"
DEFAULT_DB_PATH = Path("data/docretrieval.db")

# Per-provider embedding defaults: (model, dimensions)
PROVIDER_DEFAULTS = {
    "sentence-transformers": (DEFAULT_MODEL, 768),
    "openai": ("text-embedding-3-small", 1536),
    "ollama": ("nomic-embed-text", 768),
    "anthropic": ("claude-3-haiku-20240307", 768),
}


@dataclass(slots=True)
class RankingConfig:
    """Tunable constants of the hybrid ranking."""

    # 1.0 lets a weak keyword match plus a strong vector match of the same
    # chunk score below the vector match alone (see test_ranking).
    keyword_base_score: float = 1.25
    fulltext_weight: float = 1.2
    substring_score: float = 0.9
    trigram_weight: float = 0.8
    trigram_floor: float = 0.3
    keyword_boost: float = 1.5
    duplicate_bonus: float = 0.2
    access_step: float = 0.01
    access_cap: float = 0.2
    vector_pool_factor: int = 3
    vector_pool_cap: int = 50
    category_fraction: float = 0.4
    type_fraction: float = 0.3
    high_category_fraction: float = 0.6
    high_type_fraction: float = 0.5
    high_importance: float = 1.5


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    watch_path: Path = Path("documents")
    chunk_chars: int = 1200
    overlap: int = 150
    insert_batch_size: int = 50
    watch_depth: int = 10
    embedding_provider: str = "sentence-transformers"
    model_name: str | None = None
    embedding_dimensions: int | None = None
    embedding_api_url: str = "https://api.openai.com/v1/embeddings"
    openai_api_key: str = ""
    ollama_url: str = "http://localhost:11434"
    anthropic_api_key: str = ""
    request_timeout: float = 30.0
    ranking: RankingConfig = field(default_factory=RankingConfig)

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        provider = self.embedding_provider.lower()
        if provider not in PROVIDER_DEFAULTS:
            raise ValueError(f"Unsupported embedding provider: {self.embedding_provider}")
        self.embedding_provider = provider
        default_model, default_dimensions = PROVIDER_DEFAULTS[provider]
        if not self.model_name:
            self.model_name = default_model
        if self.embedding_dimensions is None and provider != "sentence-transformers":
            self.embedding_dimensions = default_dimensions

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        provider = env.get("EMBEDDING_PROVIDER", "sentence-transformers").lower()

        model = env.get("EMBEDDING_MODEL")
        if provider == "ollama":
            model = env.get("OLLAMA_EMBEDDING_MODEL", model)
        elif provider == "anthropic":
            model = env.get("ANTHROPIC_EMBEDDING_MODEL", model)

        dimensions = env.get("EMBEDDING_DIMENSIONS")
        kwargs = {
            "embedding_provider": provider,
            "model_name": model,
            "embedding_dimensions": int(dimensions) if dimensions else None,
            "openai_api_key": env.get("OPENAI_API_KEY", ""),
            "anthropic_api_key": env.get("ANTHROPIC_API_KEY", ""),
        }
        if "DOCRETRIEVAL_DB_PATH" in env:
            kwargs["db_path"] = Path(env["DOCRETRIEVAL_DB_PATH"])
        if "DOCUMENT_WATCH_PATH" in env:
            kwargs["watch_path"] = Path(env["DOCUMENT_WATCH_PATH"])
        if "DOCUMENT_CHUNK_SIZE" in env:
            kwargs["chunk_chars"] = int(env["DOCUMENT_CHUNK_SIZE"])
        if "DOCUMENT_CHUNK_OVERLAP" in env:
            kwargs["overlap"] = int(env["DOCUMENT_CHUNK_OVERLAP"])
        if "EMBEDDING_API_URL" in env:
            kwargs["embedding_api_url"] = env["EMBEDDING_API_URL"]
        if "OLLAMA_URL" in env:
            kwargs["ollama_url"] = env["OLLAMA_URL"]
        return cls(**kwargs)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
