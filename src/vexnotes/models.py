"""Core VexNotes data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np


@dataclass(slots=True)
class Document:
    """A note read from the repository working copy."""

    path: str
    content: str
    mtime: float


@dataclass(slots=True)
class ChunkRecord:
    """Chunk of document text with its position in the document."""

    text: str
    index: int
    total: int


@dataclass(slots=True)
class VectorRecord:
    """Persisted unit of the vector index."""

    id: str
    text: str
    embedding: np.ndarray
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class QueryResult:
    id: str
    text: str
    metadata: Dict[str, Any]
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.text,
            "metadata": self.metadata,
            "score": self.score,
        }


@dataclass(slots=True)
class SyncResult:
    """Report of one sync pass."""

    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    duration_ms: int = 0
    status: str = "ok"

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "processed_count": self.processed_count,
            "skipped_count": self.skipped_count,
            "processed": list(self.processed),
            "skipped": list(self.skipped),
            "duration_ms": self.duration_ms,
        }


@dataclass(slots=True)
class Answer:
    query: str
    answer: str
    sources: List[str] = field(default_factory=list)
