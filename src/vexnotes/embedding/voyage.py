"""Embedding adapter for Voyage-style HTTP embedding APIs."""

from __future__ import annotations

import logging

import httpx
import numpy as np

from vexnotes.errors import OversizeInputError, ProviderError
from vexnotes.utils.http import build_client, decode_json, error_message, post_json

LOGGER = logging.getLogger(__name__)

# Roughly the provider's token limit expressed in characters.
DEFAULT_MAX_INPUT_CHARS = 120_000

_OVERSIZE_HINTS = ("context length", "too long", "max tokens", "maximum", "exceeds")


class VoyageEmbedder:
    """POST ``{input, model}`` and read ``data[0].embedding`` from the reply.

    Holds no per-request state, so one instance can serve concurrent callers.
    Retries are left to the caller.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "voyage-3",
        url: str = "https://api.voyageai.com/v1/embeddings",
        timeout: float = 30.0,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.dimension: int | None = None
        self._client = client or build_client(timeout)

    def close(self) -> None:
        self._client.close()

    def embed(self, text: str, *, timeout: float | None = None) -> np.ndarray:
        if len(text) > self.max_input_chars:
            raise OversizeInputError(
                f"input of {len(text)} chars exceeds the {self.max_input_chars} char limit"
            )

        response = post_json(
            self._client,
            self.url,
            {"input": text, "model": self.model},
            api_key=self.api_key,
            timeout=timeout or self.timeout,
            provider="embedding provider",
        )

        if not response.is_success:
            body = _safe_body(response)
            message = error_message(body)
            if response.status_code == 413 or (
                response.status_code == 400
                and any(hint in message.lower() for hint in _OVERSIZE_HINTS)
            ):
                raise OversizeInputError(message, status_code=response.status_code)
            raise ProviderError(
                f"embedding provider returned status {response.status_code}: {message}",
                status_code=response.status_code,
            )

        body = decode_json(response, provider="embedding provider")
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ProviderError("embedding provider returned no embeddings")
        raw = data[0].get("embedding")
        if not isinstance(raw, list) or not raw:
            raise ProviderError("embedding provider returned no embeddings")

        try:
            vector = np.asarray(raw, dtype="float32")
        except (TypeError, ValueError) as exc:
            raise ProviderError("embedding provider returned a non-numeric embedding") from exc
        if vector.ndim != 1:
            raise ProviderError("embedding provider returned a malformed embedding")
        if self.dimension is None:
            self.dimension = int(vector.shape[0])
        elif vector.shape[0] != self.dimension:
            raise ProviderError(
                f"embedding dimension changed from {self.dimension} to {vector.shape[0]}"
            )
        return vector


def _safe_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text
