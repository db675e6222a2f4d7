"""SQLite-backed nearest-neighbour store."""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping

import numpy as np

from vexnotes.errors import CapacityMismatchError, ValidationError

_METADATA_KEY = re.compile(r"^[A-Za-z0-9_]+$")


def _json_path(key: str) -> str:
    if not _METADATA_KEY.match(key):
        raise ValidationError(f"invalid metadata key: {key!r}")
    return f"$.{key}"


class SQLiteVectorStore:
    """Persistence layer for embedded text records.

    One connection is shared between threads; a re-entrant lock serializes
    individual statements so readers never wait for a whole sync pass.
    """

    def __init__(self, db_path: Path, *, dimension: int | None = None) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()
        self.dimension = dimension or self._stored_dimension()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    embedding BLOB NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_records_source_path
                    ON records(json_extract(metadata, '$.source_path'))
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def _stored_dimension(self) -> int | None:
        with self._lock:
            row = self._conn.execute("SELECT embedding FROM records LIMIT 1").fetchone()
        if row is None:
            return None
        return len(row["embedding"]) // np.dtype("float32").itemsize

    def upsert(
        self,
        record_id: str,
        text: str,
        metadata: Mapping[str, Any],
        embedding: np.ndarray,
    ) -> None:
        """Insert a record or replace the one with the same id."""
        vector = np.asarray(embedding, dtype="float32").ravel()
        if self.dimension is None:
            self.dimension = int(vector.shape[0])
        elif vector.shape[0] != self.dimension:
            raise ValidationError(
                f"embedding dimension {vector.shape[0]} does not match store dimension {self.dimension}"
            )

        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO records(id, text, metadata, embedding)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record_id,
                    text,
                    json.dumps(dict(metadata), ensure_ascii=True),
                    sqlite3.Binary(vector.tobytes()),
                ),
            )

    def get_state(self, key: str) -> str | None:
        """Return a persisted sync bookmark, or None when it was never set."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (key,)
            ).fetchone()
        return None if row is None else str(row["value"])

    def set_state(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sync_state(key, value, updated_at) "
                "VALUES (?, ?, CURRENT_TIMESTAMP)",
                (key, value),
            )

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM records").fetchone()[0])

    def count_where(self, key: str, value: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM records "
                "WHERE CAST(json_extract(metadata, ?) AS TEXT) = ?",
                (_json_path(key), str(value)),
            ).fetchone()
        return int(row[0])

    def find_where(self, key: str, value: str, *, limit: int = 1000) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, text, metadata FROM records "
                "WHERE CAST(json_extract(metadata, ?) AS TEXT) = ? "
                "ORDER BY id LIMIT ?",
                (_json_path(key), str(value), limit),
            ).fetchall()
        return [
            {"id": row["id"], "text": row["text"], "metadata": json.loads(row["metadata"])}
            for row in rows
        ]

    def delete_where(self, key: str, value: str) -> int:
        """Delete every record whose ``metadata[key] == value``; return the row count."""
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE CAST(json_extract(metadata, ?) AS TEXT) = ?",
                (_json_path(key), str(value)),
            )
        return int(cursor.rowcount)

    def search(self, embedding: np.ndarray, *, top_k: int = 10) -> List[Dict[str, Any]]:
        """Return the ``top_k`` records with the highest dot-product score.

        Asking for more records than the table holds raises
        :class:`CapacityMismatchError`.
        """
        if top_k <= 0:
            return []
        query = np.asarray(embedding, dtype="float32").ravel()
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, text, metadata, embedding FROM records"
            ).fetchall()

        if top_k > len(rows):
            raise CapacityMismatchError(top_k, len(rows))

        embeddings = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
        if embeddings.shape[1] != query.shape[0]:
            raise ValidationError(
                f"query dimension {query.shape[0]} does not match store dimension {embeddings.shape[1]}"
            )
        scores = embeddings @ query

        if top_k < len(scores):
            top_indices = np.argpartition(scores, -top_k)[-top_k:]
            top_indices = top_indices[np.argsort(scores[top_indices])[::-1]]
        else:
            top_indices = np.argsort(scores)[::-1]

        results: List[Dict[str, Any]] = []
        for idx in top_indices:
            row = rows[idx]
            results.append(
                {
                    "id": row["id"],
                    "text": row["text"],
                    "metadata": json.loads(row["metadata"]),
                    "score": float(scores[idx]),
                }
            )
        return results
