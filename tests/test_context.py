"""Tests for application context wiring."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from vexnotes.config import AppConfig
from vexnotes.context import build_context
from vexnotes.index.sync import SyncState

from conftest import LetterEmbedder


class TestBuildContext:
    """Tests for build_context."""

    def test_wires_components(self, tmp_path: Path) -> None:
        config = AppConfig(
            notes_repo="https://github.com/acme/notes.git",
            clone_folder=tmp_path / "clones",
            db_path=Path("nested/vectors.db"),
            top_k=6,
            tags={"team": "docs"},
        )

        with patch("vexnotes.context.build_embedder", return_value=LetterEmbedder()):
            context = build_context(config, base_dir=tmp_path)

        try:
            assert (tmp_path / "nested" / "vectors.db").exists()
            assert context.index.store is context.store
            assert context.repository.clone_path == tmp_path / "clones" / "notes"
            assert context.orchestrator.tags == {"team": "docs"}
            assert context.orchestrator.state is SyncState.IDLE
            assert context.pipeline.top_k == 6
            assert context.index.approximate_count() == 0
        finally:
            context.close()
