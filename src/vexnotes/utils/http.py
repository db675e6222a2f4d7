"""Shared plumbing for JSON calls to external providers."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from vexnotes.errors import ProviderError, TransportError

LOGGER = logging.getLogger(__name__)


def build_client(timeout: float) -> httpx.Client:
    """Create the pooled client shared by one provider adapter."""
    return httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)))


def post_json(
    client: httpx.Client,
    url: str,
    payload: Mapping[str, Any],
    *,
    api_key: str,
    timeout: float,
    provider: str,
) -> httpx.Response:
    """POST ``payload`` and return the response, mapping transport failures.

    Non-2xx responses are returned as-is; callers decide how to classify them.
    """
    try:
        return client.post(
            url,
            json=dict(payload),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )
    except httpx.TimeoutException as exc:
        raise TransportError(f"{provider} request timed out after {timeout:.1f}s") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"{provider} request failed: {exc}") from exc


def decode_json(response: httpx.Response, *, provider: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(
            f"{provider} returned a non-JSON body", status_code=response.status_code
        ) from exc


def error_message(body: Any) -> str:
    """Pull a human-readable message out of a provider error payload."""
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping):
            return str(error.get("message") or error)
        if error:
            return str(error)
        detail = body.get("detail")
        if detail:
            return str(detail)
    return str(body)[:300]
