"""Application configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Tuple

from dotenv import dotenv_values

from vexnotes.errors import ConfigError

DEFAULT_EMBEDDING_URL = "https://api.voyageai.com/v1/embeddings"
DEFAULT_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_DOCUMENT_EXTENSIONS = (".md", ".markdown", ".txt")


@dataclass(slots=True)
class AppConfig:
    notes_repo: str
    clone_folder: Path
    db_path: Path = Path("data/vexnotes.db")
    git_user: str = ""
    git_pat: str = ""
    embedding_provider: str = "voyage"
    embedding_model: str = "voyage-3"
    embedding_url: str = DEFAULT_EMBEDDING_URL
    voyage_api_key: str = ""
    openai_api_key: str = ""
    chat_model: str = "gpt-4o"
    chat_url: str = DEFAULT_CHAT_URL
    chunk_chars: int = 10000
    overlap_fraction: float = 0.2
    top_k: int = 4
    request_timeout: float = 30.0
    max_retries: int = 2
    api_key: str = ""
    server_host: str = "127.0.0.1"
    server_port: int = 8080
    tags: dict[str, str] = field(default_factory=dict)
    document_extensions: Tuple[str, ...] = DEFAULT_DOCUMENT_EXTENSIONS

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    @property
    def repo_path(self) -> Path:
        """Working-copy location of the notes repository."""
        name = self.notes_repo.rstrip("/").rsplit("/", 1)[-1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return Path(self.clone_folder) / name


def _expand(value: str) -> str:
    return os.path.expanduser(value) if value.startswith("~") else value


def _parse_tags(raw: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in raw.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        if key.strip():
            tags[key.strip()] = value.strip()
    return tags


def load_config(environ: Mapping[str, str]) -> AppConfig:
    """Build an :class:`AppConfig` from an environment mapping.

    Every missing required key and every malformed value is collected before
    raising, so a single :class:`ConfigError` reports the whole problem.
    """

    def get(key: str, default: str = "") -> str:
        return environ.get(key, default).strip()

    provider = get("EMBEDDING_PROVIDER", "voyage").lower()
    required = ["NOTES_REPO", "CLONE_FOLDER", "OPENAI_API_KEY"]
    if provider == "voyage":
        required.append("VOYAGE_API_KEY")
    missing = [key for key in required if not get(key)]

    invalid: list[str] = []
    if provider not in {"voyage", "local"}:
        invalid.append(f"EMBEDDING_PROVIDER={provider!r}")

    def number(key: str, default, cast):
        raw = get(key)
        if not raw:
            return default
        try:
            return cast(raw)
        except ValueError:
            invalid.append(f"{key}={raw!r}")
            return default

    chunk_chars = number("CHUNK_CHARS", 10000, int)
    overlap_fraction = number("CHUNK_OVERLAP_FRACTION", 0.2, float)
    top_k = number("TOP_K", 4, int)
    request_timeout = number("REQUEST_TIMEOUT", 30.0, float)
    max_retries = number("MAX_RETRIES", 2, int)
    server_port = number("SERVER_PORT", 8080, lambda raw: int(raw.lstrip(":")))

    if chunk_chars <= 0:
        invalid.append(f"CHUNK_CHARS={chunk_chars}")
    if not 0 <= overlap_fraction < 1:
        invalid.append(f"CHUNK_OVERLAP_FRACTION={overlap_fraction}")
    if top_k <= 0:
        invalid.append(f"TOP_K={top_k}")

    if missing or invalid:
        raise ConfigError(missing, invalid)

    extensions = tuple(
        ext if ext.startswith(".") else f".{ext}"
        for ext in (e.strip().lower() for e in get("DOCUMENT_EXTENSIONS").split(","))
        if ext
    )

    return AppConfig(
        notes_repo=get("NOTES_REPO"),
        clone_folder=Path(_expand(get("CLONE_FOLDER"))),
        db_path=Path(_expand(get("VECTOR_DB_PATH", "data/vexnotes.db"))),
        git_user=get("GIT_USER"),
        git_pat=get("GIT_PAT"),
        embedding_provider=provider,
        embedding_model=get(
            "EMBEDDING_MODEL",
            "voyage-3" if provider == "voyage" else "sentence-transformers/all-mpnet-base-v2",
        ),
        embedding_url=get("EMBEDDING_URL", DEFAULT_EMBEDDING_URL),
        voyage_api_key=get("VOYAGE_API_KEY"),
        openai_api_key=get("OPENAI_API_KEY"),
        chat_model=get("CHAT_MODEL", "gpt-4o"),
        chat_url=get("CHAT_URL", DEFAULT_CHAT_URL),
        chunk_chars=chunk_chars,
        overlap_fraction=overlap_fraction,
        top_k=top_k,
        request_timeout=request_timeout,
        max_retries=max(0, max_retries),
        api_key=get("API_KEY"),
        server_host=get("SERVER_HOST", "127.0.0.1"),
        server_port=server_port,
        tags=_parse_tags(get("INDEX_TAGS")),
        document_extensions=extensions or DEFAULT_DOCUMENT_EXTENSIONS,
    )


def load_environment(env_file: Path | None = None) -> dict[str, str]:
    """Merge an optional ``.env`` file under the process environment."""
    merged: dict[str, str] = {}
    if env_file is not None:
        merged.update(
            (key, value) for key, value in dotenv_values(env_file).items() if value is not None
        )
    merged.update(os.environ)
    return merged
