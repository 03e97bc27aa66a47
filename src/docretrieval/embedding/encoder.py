"""In-process embeddings with sentence-transformers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from sentence_transformers import SentenceTransformer

from docretrieval.config import DEFAULT_MODEL
from docretrieval.embedding.base import EmbeddingProvider

logger = logging.getLogger(__name__)


def _onnx_available() -> bool:
    try:
        import onnxruntime  # noqa: F401
    except ImportError:
        return False
    return True


@dataclass(slots=True)
class EncoderConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    backend: Literal["torch", "onnx", "openvino"] | None = None
    device: str | None = None


class SentenceTransformerProvider(EmbeddingProvider):
    """Local model loaded into this process.

    Uses the ONNX backend when onnxruntime is installed and falls back to
    PyTorch if the ONNX model cannot be loaded.
    """

    name = "sentence-transformers"

    def __init__(self, config: EncoderConfig | None = None) -> None:
        self.config = config or EncoderConfig()
        if self.config.backend is None:
            self.config.backend = "onnx" if _onnx_available() else "torch"

        try:
            self._model = self._load_model()
        except Exception as e:
            if self.config.backend == "torch":
                raise
            logger.warning(
                f"Failed to load model with backend '{self.config.backend}': {e}. "
                "Falling back to PyTorch."
            )
            self.config.backend = "torch"
            self._model = self._load_model()

        self._dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded %s (backend: %s, dimension: %s)",
            self.config.model_name,
            self.config.backend,
            self._dimension,
        )

    def _load_model(self) -> SentenceTransformer:
        return SentenceTransformer(
            self.config.model_name,
            backend=self.config.backend,
            device=self.config.device,
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_many(self, texts: list[str]):
        return self._model.encode(
            texts,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
