"""Git working-copy adapter driven through the ``git`` executable."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Sequence
from urllib.parse import quote, urlsplit, urlunsplit

from vexnotes.errors import TransportError
from vexnotes.ingestion.markdown import read_document
from vexnotes.models import Document

LOGGER = logging.getLogger(__name__)


def with_credentials(repo_url: str, username: str, token: str) -> str:
    """Embed basic-auth credentials into an https URL; other URLs pass through."""
    if not token:
        return repo_url
    parts = urlsplit(repo_url)
    if parts.scheme not in {"http", "https"}:
        return repo_url
    user = quote(username or "git", safe="")
    netloc = f"{user}:{quote(token, safe='')}@{parts.hostname or ''}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class GitRepository:
    """Clone-or-pull access to the notes repository.

    ``ensure_up_to_date(since)`` clones or pulls, then returns the
    repository-relative paths that need re-indexing: every tracked file when
    ``since`` is None or no longer part of the history, otherwise the files
    added, modified or renamed between ``since`` and the new HEAD. Deleted
    files are not reported.
    """

    def __init__(
        self,
        repo_url: str,
        clone_path: Path,
        *,
        username: str = "",
        token: str = "",
        timeout: float = 120.0,
    ) -> None:
        self.repo_url = repo_url
        self.clone_path = Path(clone_path)
        self.username = username
        self.token = token
        self.timeout = timeout

    @property
    def is_cloned(self) -> bool:
        return (self.clone_path / ".git").exists()

    def ensure_up_to_date(self, since: str | None = None) -> List[str]:
        if self.is_cloned:
            self.pull()
        else:
            self.clone()

        if since is None:
            return self.list_files()
        if not self.has_commit(since):
            LOGGER.warning("Commit %s is not in the history; listing every file", since[:12])
            return self.list_files()
        head = self.head()
        if head == since:
            return []
        return self.changed_files(since, head)

    def clone(self) -> None:
        if self.clone_path.exists():
            LOGGER.info("Removing stale directory %s before clone", self.clone_path)
            shutil.rmtree(self.clone_path)
        self.clone_path.parent.mkdir(parents=True, exist_ok=True)

        LOGGER.info("Cloning %s into %s", self.repo_url, self.clone_path)
        self._git(
            ["clone", with_credentials(self.repo_url, self.username, self.token), str(self.clone_path)],
            cwd=self.clone_path.parent,
        )

    def pull(self) -> None:
        old_head = self.head()
        self._git(["pull", "--ff-only"])
        new_head = self.head()
        if old_head == new_head:
            LOGGER.info("Repository already up to date at %s", new_head[:12])
        else:
            LOGGER.info("Pulled %s..%s", old_head[:12], new_head[:12])

    def head(self) -> str:
        return self._git(["rev-parse", "HEAD"]).strip()

    def has_commit(self, sha: str) -> bool:
        try:
            self._git(["cat-file", "-e", f"{sha}^{{commit}}"])
        except TransportError:
            return False
        return True

    def changed_files(self, old: str, new: str) -> List[str]:
        output = self._git(["diff", "--name-only", "--diff-filter=AMR", "-z", old, new])
        return [name for name in output.split("\0") if name]

    def list_files(self) -> List[str]:
        output = self._git(["ls-files", "-z"])
        return sorted(name for name in output.split("\0") if name)

    def read(self, path: str) -> Document:
        return read_document(self.clone_path, path)

    def _redact(self, text: str) -> str:
        return text.replace(quote(self.token, safe=""), "***").replace(self.token, "***") if self.token else text

    def _git(self, args: Sequence[str], *, cwd: Path | None = None) -> str:
        command = ["git", *args]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            completed = subprocess.run(
                command,
                cwd=str(cwd or self.clone_path),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise TransportError(f"git {args[0]} timed out after {self.timeout:.0f}s") from exc
        except OSError as exc:
            raise TransportError(f"cannot run git: {exc}") from exc

        if completed.returncode != 0:
            detail = self._redact((completed.stderr or completed.stdout).strip())
            raise TransportError(f"git {args[0]} failed: {detail}")
        return completed.stdout
