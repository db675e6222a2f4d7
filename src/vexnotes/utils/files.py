"""Utility helpers for working with repository paths."""

from __future__ import annotations

import hashlib
from pathlib import PurePosixPath
from typing import Iterable

from vexnotes.config import DEFAULT_DOCUMENT_EXTENSIONS


def is_document_path(path: str, extensions: Iterable[str] = DEFAULT_DOCUMENT_EXTENSIONS) -> bool:
    """Return True when ``path`` names a note the index should consider."""
    pure = PurePosixPath(path.replace("\\", "/"))
    if ".git" in pure.parts:
        return False
    return pure.suffix.lower() in {ext.lower() for ext in extensions}


def stable_path_id(path: str) -> str:
    """Short SHA-1 digest of a repository-relative path."""
    return hashlib.sha1(path.encode("utf-8")).hexdigest()[:16]


def record_id(path: str, ordinal: int) -> str:
    """Deterministic vector record id for chunk ``ordinal`` of ``path``."""
    return f"{stable_path_id(path)}-{ordinal}"
