"""Markdown note loading and indexability checks.

Notes that are nothing but navigation (front matter, comments and links)
carry no content worth embedding. ``is_indexable`` strips that markup and
reports whether any alphanumeric character survives.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from vexnotes.errors import DocumentReadError
from vexnotes.models import Document

LOGGER = logging.getLogger(__name__)

FRONT_MATTER = re.compile(r"\A\s*(---|\+\+\+)[ \t]*\r?\n.*?\r?\n\1[ \t]*(?:\r?\n|\Z)", re.S)
HTML_COMMENT = re.compile(r"<!--.*?-->", re.S)
OBSIDIAN_COMMENT = re.compile(r"%%.*?%%", re.S)
WIKI_LINK = re.compile(r"!?\[\[[^\]]*\]\]")
INLINE_LINK = re.compile(r"!?\[[^\]]*\]\([^)]*\)")
BARE_URL = re.compile(r"<?https?://[^\s>]+>?")


def strip_markup(text: str) -> str:
    """Remove front matter, comments and link markup from ``text``."""
    text = FRONT_MATTER.sub("", text, count=1)
    text = HTML_COMMENT.sub(" ", text)
    text = OBSIDIAN_COMMENT.sub(" ", text)
    text = WIKI_LINK.sub(" ", text)
    text = INLINE_LINK.sub(" ", text)
    return BARE_URL.sub(" ", text)


def is_indexable(text: str) -> bool:
    """Return False when ``text`` holds no prose once markup is stripped."""
    return any(ch.isalnum() for ch in strip_markup(text))


def read_document(root: Path, path: str) -> Document:
    """Read a repository-relative note from the working copy at ``root``."""
    full_path = Path(root) / path
    try:
        raw = full_path.read_bytes()
        mtime = full_path.stat().st_mtime
    except OSError as exc:
        raise DocumentReadError(f"cannot read {path}: {exc}") from exc

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentReadError(f"{path} is not valid UTF-8") from exc

    LOGGER.debug("Read %s (%d bytes)", path, len(raw))
    return Document(path=path, content=content, mtime=mtime)
