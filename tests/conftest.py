"""Shared fixtures: a deterministic embedder and an in-memory notes repository."""

from __future__ import annotations

from typing import Dict, List

import numpy as np
import pytest

from vexnotes.errors import DocumentReadError
from vexnotes.index.storage import SQLiteVectorStore
from vexnotes.index.vector_index import VectorIndex
from vexnotes.models import Document


class LetterEmbedder:
    """Normalized letter-frequency vectors; similar spelling means similar vectors."""

    dimension = 26

    def __init__(self) -> None:
        self.calls: List[str] = []

    def embed(self, text: str, *, timeout: float | None = None) -> np.ndarray:
        self.calls.append(text)
        vector = np.zeros(self.dimension, dtype="float32")
        for ch in text.lower():
            if "a" <= ch <= "z":
                vector[ord(ch) - ord("a")] += 1.0
        norm = np.linalg.norm(vector)
        return vector / norm if norm else vector


class FakeRepository:
    """Repository double with a linear commit history; heads are commit counts."""

    def __init__(self, files: Dict[str, str] | None = None) -> None:
        self.files: Dict[str, str] = dict(files or {})
        self.history: List[List[str]] = [list(self.files)]
        self.diff_error: Exception | None = None

    def commit(self, path: str, content: str) -> None:
        self.files[path] = content
        self.history.append([path])

    def touch(self, *paths: str) -> None:
        """Record a commit that reports ``paths`` as changed without writing them."""
        self.history.append(list(paths))

    def head(self) -> str:
        return str(len(self.history))

    def ensure_up_to_date(self, since: str | None = None) -> List[str]:
        if self.diff_error is not None:
            raise self.diff_error
        start = 0 if since is None else int(since)
        return [path for paths in self.history[start:] for path in paths]

    def list_files(self) -> List[str]:
        return sorted(self.files)

    def read(self, path: str) -> Document:
        if path not in self.files:
            raise DocumentReadError(f"cannot read {path}")
        return Document(path=path, content=self.files[path], mtime=1_700_000_000.0)


@pytest.fixture
def embedder() -> LetterEmbedder:
    return LetterEmbedder()


@pytest.fixture
def store(tmp_path):
    store = SQLiteVectorStore(tmp_path / "vectors.db")
    yield store
    store.close()


@pytest.fixture
def index(store, embedder) -> VectorIndex:
    return VectorIndex(store, embedder)
