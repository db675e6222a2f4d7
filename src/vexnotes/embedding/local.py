"""Embedding adapter backed by a local sentence-transformers model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from vexnotes.errors import ProviderError

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-mpnet-base-v2"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_LOCAL_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class LocalEmbedder:
    """Thin wrapper around `SentenceTransformer` for offline embeddings.

    ``timeout`` is accepted for interface parity and ignored since encoding
    runs in-process.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
        self.dimension: int | None = int(self._model.get_sentence_embedding_dimension())
        logger.info("Loaded local embedding model %s (dim=%s)", self.config.model_name, self.dimension)

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        try:
            embeddings = self._model.encode(
                list(texts),
                batch_size=self.config.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
        except RuntimeError as exc:
            raise ProviderError(f"local embedding failed: {exc}") from exc
        return embeddings.astype("float32", copy=False)

    def embed(self, text: str, *, timeout: float | None = None) -> np.ndarray:
        return self.embed_batch([text])[0]
