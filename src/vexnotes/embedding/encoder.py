"""Embedding gateway: the capability every embedding adapter provides."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from vexnotes.config import AppConfig
from vexnotes.embedding.voyage import VoyageEmbedder


class Embedder(Protocol):
    dimension: int | None

    def embed(self, text: str, *, timeout: float | None = None) -> np.ndarray:
        ...


def build_embedder(config: AppConfig) -> Embedder:
    """Instantiate the adapter named by ``config.embedding_provider``."""
    if config.embedding_provider == "local":
        # Imported here so the torch stack only loads when it is used.
        from vexnotes.embedding.local import EmbeddingConfig, LocalEmbedder

        return LocalEmbedder(EmbeddingConfig(model_name=config.embedding_model))
    return VoyageEmbedder(
        config.voyage_api_key,
        model=config.embedding_model,
        url=config.embedding_url,
        timeout=config.request_timeout,
    )
