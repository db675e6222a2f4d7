"""Incremental synchronization of the vector index with the notes repository."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Protocol

import numpy as np

from vexnotes.config import DEFAULT_DOCUMENT_EXTENSIONS
from vexnotes.errors import (
    DocumentReadError,
    OversizeInputError,
    ProviderError,
    SyncAbortedError,
    SyncCancelledError,
    SyncError,
    TransportError,
    VexError,
)
from vexnotes.index.vector_index import VectorIndex
from vexnotes.ingestion.markdown import is_indexable
from vexnotes.models import ChunkRecord, Document, SyncResult, VectorRecord
from vexnotes.utils.files import is_document_path, record_id
from vexnotes.utils.text import chunk_text

LOGGER = logging.getLogger(__name__)

SOURCE_PATH_KEY = "source_path"
LAST_SYNCED_HEAD_KEY = "last_synced_head"


class SyncState(str, Enum):
    IDLE = "idle"
    DIFFING = "diffing"
    PROCESSING = "processing"
    FAILED = "failed"


class Repository(Protocol):
    def ensure_up_to_date(self, since: str | None = None) -> List[str]:
        ...

    def head(self) -> str:
        ...

    def list_files(self) -> List[str]:
        ...

    def read(self, path: str) -> Document:
        ...


def _is_retryable(exc: VexError) -> bool:
    if isinstance(exc, OversizeInputError):
        return False
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, ProviderError):
        return exc.status_code is None or exc.status_code == 429 or exc.status_code >= 500
    return False


class SyncOrchestrator:
    """Coordinates change detection and re-indexing of notes.

    Each changed path has its old records retired before new ones are
    written. A document is either fully indexed or left with no records:
    any failure while embedding or storing its chunks removes what was
    written for it and aborts the pass. Documents finished earlier in the
    same pass stay committed.

    The repository head is recorded under ``LAST_SYNCED_HEAD_KEY`` only when
    a pass returns normally, so the next pass diffs from the last head that
    was fully indexed.
    """

    def __init__(
        self,
        repository: Repository,
        index: VectorIndex,
        *,
        chunk_chars: int = 10000,
        overlap_fraction: float = 0.2,
        extensions: Iterable[str] = DEFAULT_DOCUMENT_EXTENSIONS,
        tags: Mapping[str, str] | None = None,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repository = repository
        self.index = index
        self.chunk_chars = chunk_chars
        self.overlap_fraction = overlap_fraction
        self.extensions = tuple(extensions)
        self.tags = dict(tags or {})
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.timeout = timeout
        self._sleep = sleep
        self._state = SyncState.IDLE
        self._run_lock = threading.Lock()

    @property
    def state(self) -> SyncState:
        return self._state

    def run(self, *, cancel: threading.Event | None = None, full: bool = False) -> SyncResult:
        """Execute one sync pass.

        ``full`` re-indexes every tracked file instead of only the changed
        ones. ``cancel`` is checked between documents.
        """
        with self._run_lock:
            started = time.perf_counter()
            self._state = SyncState.DIFFING
            try:
                last_head = self.index.store.get_state(LAST_SYNCED_HEAD_KEY)
                changed = self.repository.ensure_up_to_date(since=last_head)
                head = self.repository.head()
                if full:
                    changed = self.repository.list_files()
            except (VexError, sqlite3.Error) as exc:
                self._state = SyncState.FAILED
                LOGGER.error("Could not compute changed files: %s", exc)
                raise SyncError(f"failed to compute changed files: {exc}") from exc

            result = SyncResult()
            if not changed:
                LOGGER.info("No changed files")
                self._mark_synced(head)
                self._state = SyncState.IDLE
                result.duration_ms = _elapsed_ms(started)
                return result

            LOGGER.info("Syncing %d changed path(s)", len(changed))
            self._state = SyncState.PROCESSING
            try:
                for path in dict.fromkeys(changed):
                    if cancel is not None and cancel.is_set():
                        raise SyncCancelledError(
                            f"sync cancelled after {result.processed_count + result.skipped_count} path(s)"
                        )
                    if self._sync_path(path):
                        result.processed.append(path)
                    else:
                        result.skipped.append(path)
            except SyncError:
                self._state = SyncState.FAILED
                raise

            self._mark_synced(head)
            self._state = SyncState.IDLE
            result.duration_ms = _elapsed_ms(started)
            LOGGER.info(
                "Sync finished: %d processed, %d skipped in %d ms",
                result.processed_count,
                result.skipped_count,
                result.duration_ms,
            )
            return result

    def _sync_path(self, path: str) -> bool:
        """Re-index one path. Returns False when the path was skipped."""
        if not is_document_path(path, self.extensions):
            LOGGER.debug("Skipping non-document %s", path)
            return False

        try:
            document = self.repository.read(path)
        except DocumentReadError as exc:
            LOGGER.warning("Skipping unreadable %s: %s", path, exc)
            return False

        try:
            removed = self.index.delete_by_metadata(SOURCE_PATH_KEY, path)
        except (VexError, sqlite3.Error) as exc:
            raise SyncAbortedError(path, f"could not retire old vectors: {exc}") from exc
        if removed:
            LOGGER.debug("Retired %d stale record(s) for %s", removed, path)

        if not is_indexable(document.content):
            LOGGER.info("Skipping %s: no indexable content", path)
            return False

        texts = chunk_text(
            document.content, max_chars=self.chunk_chars, overlap_fraction=self.overlap_fraction
        )
        if not texts:
            return False
        chunks = [
            ChunkRecord(text=text, index=ordinal, total=len(texts))
            for ordinal, text in enumerate(texts)
        ]

        try:
            embeddings = [self._embed(chunk.text) for chunk in chunks]
        except VexError as exc:
            LOGGER.error("Embedding failed for %s: %s", path, exc)
            raise SyncAbortedError(path, f"embedding failed: {exc}") from exc

        ingested_at = datetime.now(timezone.utc).isoformat()
        mod_time = datetime.fromtimestamp(document.mtime, timezone.utc).isoformat()
        try:
            for chunk, embedding in zip(chunks, embeddings):
                metadata = {
                    **self.tags,
                    SOURCE_PATH_KEY: path,
                    "chunk_index": str(chunk.index),
                    "total_chunks": str(chunk.total),
                    "ingested_at": ingested_at,
                    "mod_time": mod_time,
                }
                self.index.upsert(
                    VectorRecord(
                        id=record_id(path, chunk.index),
                        text=chunk.text,
                        embedding=embedding,
                        metadata=metadata,
                    )
                )
        except (VexError, sqlite3.Error) as exc:
            LOGGER.error("Storing chunks failed for %s: %s", path, exc)
            self._discard(path)
            raise SyncAbortedError(path, f"upsert failed: {exc}") from exc

        LOGGER.info("Indexed %s (%d chunk(s))", path, len(chunks))
        return True

    def _embed(self, text: str) -> np.ndarray:
        attempt = 0
        while True:
            try:
                return self.index.embedder.embed(text, timeout=self.timeout)
            except VexError as exc:
                if attempt >= self.max_retries or not _is_retryable(exc):
                    raise
                delay = self.retry_backoff * (2**attempt)
                attempt += 1
                LOGGER.warning(
                    "Embedding attempt %d failed (%s); retrying in %.1fs", attempt, exc, delay
                )
                self._sleep(delay)

    def _mark_synced(self, head: str) -> None:
        try:
            self.index.store.set_state(LAST_SYNCED_HEAD_KEY, head)
        except sqlite3.Error as exc:
            self._state = SyncState.FAILED
            raise SyncError(f"could not record synced head {head[:12]}: {exc}") from exc

    def _discard(self, path: str) -> None:
        try:
            self.index.delete_by_metadata(SOURCE_PATH_KEY, path)
        except (VexError, sqlite3.Error) as exc:
            LOGGER.error("Could not remove partial records for %s: %s", path, exc)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
