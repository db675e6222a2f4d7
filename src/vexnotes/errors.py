"""Exception hierarchy shared by every VexNotes component."""

from __future__ import annotations

from typing import Sequence


class VexError(Exception):
    """Base class for all errors raised by VexNotes."""


class ConfigError(VexError):
    """Raised when required configuration is missing or malformed."""

    def __init__(self, missing_keys: Sequence[str], invalid: Sequence[str] = ()) -> None:
        self.missing_keys = list(missing_keys)
        self.invalid = list(invalid)
        parts = []
        if self.missing_keys:
            parts.append("missing required environment variables: " + ", ".join(self.missing_keys))
        if self.invalid:
            parts.append("invalid values: " + ", ".join(self.invalid))
        super().__init__("; ".join(parts) or "invalid configuration")


class TransportError(VexError):
    """Network failure or timeout while talking to an external provider."""


class ProviderError(VexError):
    """External provider answered with a non-success response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OversizeInputError(ProviderError):
    """Input text exceeds what the embedding provider accepts."""


class ValidationError(VexError):
    """Caller supplied an empty or malformed value."""


class EmptyIdError(ValidationError):
    """Vector record has no id."""


class EmptyContentError(ValidationError):
    """Vector record has no text content."""


class NotFoundError(VexError):
    """A required lookup matched nothing."""


class CapacityMismatchError(VexError):
    """More results were requested than the store holds."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"nResults must be <= the number of documents ({requested} > {available})"
        )
        self.requested = requested
        self.available = available


class DocumentReadError(VexError):
    """A source document could not be read or decoded."""


class SyncError(VexError):
    """A sync pass could not complete."""


class SyncAbortedError(SyncError):
    """A document could not be fully indexed; the pass was stopped."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"sync aborted at {path}: {message}")
        self.path = path


class SyncCancelledError(SyncError):
    """The caller cancelled the pass between documents."""


class AnswerSynthesisError(VexError):
    """The completion provider failed to produce the final answer."""
