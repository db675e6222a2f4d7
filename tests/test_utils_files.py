"""Tests for repository path helpers."""

from __future__ import annotations

import pytest

from vexnotes.utils.files import is_document_path, record_id, stable_path_id


class TestIsDocumentPath:
    """Test is_document_path function."""

    @pytest.mark.parametrize(
        "path", ["note.md", "deep/dir/note.markdown", "README.MD", "journal/2024.txt"]
    )
    def test_accepts_note_extensions(self, path: str) -> None:
        assert is_document_path(path)

    @pytest.mark.parametrize("path", ["image.png", "Makefile", "notes/data.json"])
    def test_rejects_other_files(self, path: str) -> None:
        assert not is_document_path(path)

    def test_rejects_git_internals(self) -> None:
        """Anything under a .git directory is ignored."""
        assert not is_document_path(".git/description.md")
        assert not is_document_path("sub/.git/hooks/readme.txt")

    def test_custom_extensions(self) -> None:
        assert is_document_path("page.rst", (".rst",))
        assert not is_document_path("page.md", (".rst",))

    def test_windows_separators(self) -> None:
        assert not is_document_path(".git\\info\\exclude.md")
        assert is_document_path("notes\\today.md")


class TestIdentifiers:
    """Test deterministic record identifiers."""

    def test_stable_path_id(self) -> None:
        first = stable_path_id("notes/a.md")

        assert first == stable_path_id("notes/a.md")
        assert first != stable_path_id("notes/b.md")
        assert len(first) == 16

    def test_record_id(self) -> None:
        assert record_id("notes/a.md", 3) == f"{stable_path_id('notes/a.md')}-3"
