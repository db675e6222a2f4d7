"""Vector index over the nearest-neighbour store.

Adds input validation and absorbs the store's "requested more results than
available" failures so callers always get a (possibly partial or empty)
result list. The approximate record count is informational only.
"""

from __future__ import annotations

import logging
import threading
from typing import List

import numpy as np

from vexnotes.embedding.encoder import Embedder
from vexnotes.errors import (
    CapacityMismatchError,
    EmptyContentError,
    EmptyIdError,
    NotFoundError,
    ValidationError,
)
from vexnotes.index.storage import SQLiteVectorStore
from vexnotes.models import QueryResult, VectorRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_RESULTS = 10


class ApproximateCounter:
    """Lock-serialized integer that never drops below zero."""

    def __init__(self, initial: int = 0) -> None:
        self._value = max(0, initial)
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, delta: int) -> int:
        with self._lock:
            self._value = max(0, self._value + delta)
            return self._value

    def reset(self, value: int) -> None:
        with self._lock:
            self._value = max(0, value)


class VectorIndex:
    def __init__(self, store: SQLiteVectorStore, embedder: Embedder) -> None:
        self.store = store
        self.embedder = embedder
        # Seeded once from the store; kept up to date incrementally afterwards.
        self._count = ApproximateCounter(store.count())

    def approximate_count(self) -> int:
        return self._count.value

    def upsert(self, record: VectorRecord) -> None:
        if not record.id or not record.id.strip():
            raise EmptyIdError("vector ID cannot be empty")
        if not record.text or not record.text.strip():
            raise EmptyContentError("vector data/content cannot be empty")

        self.store.upsert(record.id, record.text, record.metadata, record.embedding)
        self._count.add(1)

    def query_by_vector(self, vector: np.ndarray, k: int) -> List[QueryResult]:
        """Return up to ``k`` nearest records, best first.

        When the store holds fewer than ``k`` records every record is
        returned; an empty index yields ``[]``.
        """
        if k <= 0:
            k = DEFAULT_RESULTS

        while k > 0:
            try:
                rows = self.store.search(vector, top_k=k)
            except CapacityMismatchError as exc:
                LOGGER.debug("Requested %d results, store holds %d", k, exc.available)
                # Rows may vanish between attempts; k strictly decreases.
                k = min(exc.available, k - 1)
                continue
            return [
                QueryResult(
                    id=row["id"],
                    text=row["text"],
                    metadata=row["metadata"],
                    score=row["score"],
                )
                for row in rows
            ]
        return []

    def query_by_text(self, text: str, k: int) -> List[QueryResult]:
        if not text or not text.strip():
            raise ValidationError("query cannot be empty")
        return self.query_by_vector(self.embedder.embed(text), k)

    def delete_by_metadata(self, key: str, value: str) -> int:
        """Remove every record whose ``metadata[key] == value``."""
        if not key:
            raise ValidationError("metadata filter cannot be empty")
        matched = self.store.count_where(key, value)
        deleted = self.store.delete_where(key, value)
        if matched:
            self._count.add(-matched)
        return deleted

    def get_by_metadata(self, key: str, value: str) -> QueryResult:
        if not key:
            raise ValidationError("metadata filter cannot be empty")
        rows = self.store.find_where(key, value, limit=1)
        if not rows:
            raise NotFoundError(f"no document found with metadata {key}={value}")
        row = rows[0]
        return QueryResult(id=row["id"], text=row["text"], metadata=row["metadata"], score=1.0)
