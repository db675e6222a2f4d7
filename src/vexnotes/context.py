"""Application context: every long-lived component, built once at start-up."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vexnotes.chat.completion import OpenAIChat
from vexnotes.chat.pipeline import QueryPipeline
from vexnotes.config import AppConfig
from vexnotes.embedding.encoder import Embedder, build_embedder
from vexnotes.index.storage import SQLiteVectorStore
from vexnotes.index.sync import SyncOrchestrator
from vexnotes.index.vector_index import VectorIndex
from vexnotes.vcs.git import GitRepository

LOGGER = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: AppConfig
    store: SQLiteVectorStore
    embedder: Embedder
    index: VectorIndex
    chat: OpenAIChat
    repository: GitRepository
    orchestrator: SyncOrchestrator
    pipeline: QueryPipeline

    def close(self) -> None:
        for closable in (self.embedder, self.chat):
            close = getattr(closable, "close", None)
            if close is not None:
                close()
        self.store.close()


def build_context(config: AppConfig, *, base_dir: Path | None = None) -> AppContext:
    db_path = config.resolve_db_path(base_dir or Path.cwd())
    db_path.parent.mkdir(parents=True, exist_ok=True)

    store = SQLiteVectorStore(db_path)
    embedder = build_embedder(config)
    index = VectorIndex(store, embedder)
    chat = OpenAIChat(
        config.openai_api_key,
        model=config.chat_model,
        url=config.chat_url,
        timeout=config.request_timeout,
    )
    repository = GitRepository(
        config.notes_repo,
        config.repo_path,
        username=config.git_user,
        token=config.git_pat,
    )
    orchestrator = SyncOrchestrator(
        repository,
        index,
        chunk_chars=config.chunk_chars,
        overlap_fraction=config.overlap_fraction,
        extensions=config.document_extensions,
        tags=config.tags,
        max_retries=config.max_retries,
        timeout=config.request_timeout,
    )
    pipeline = QueryPipeline(index, chat, top_k=config.top_k, timeout=config.request_timeout)

    LOGGER.info(
        "Context ready: db=%s, embedding=%s/%s, records~%d",
        db_path,
        config.embedding_provider,
        config.embedding_model,
        index.approximate_count(),
    )
    return AppContext(
        config=config,
        store=store,
        embedder=embedder,
        index=index,
        chat=chat,
        repository=repository,
        orchestrator=orchestrator,
        pipeline=pipeline,
    )
