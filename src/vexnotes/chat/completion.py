"""Completion provider adapter for OpenAI-style chat completion APIs."""

from __future__ import annotations

import logging
from typing import Dict, List, Protocol

import httpx

from vexnotes.errors import ProviderError, ValidationError
from vexnotes.utils.http import build_client, decode_json, error_message, post_json

LOGGER = logging.getLogger(__name__)

Message = Dict[str, str]


class ChatProvider(Protocol):
    def complete(
        self, prompt: str, *, system: str | None = None, timeout: float | None = None
    ) -> str:
        ...


def build_messages(prompt: str, system: str | None = None) -> List[Message]:
    if not prompt.strip():
        raise ValidationError("prompt cannot be empty")
    messages: List[Message] = []
    if system is not None:
        if not system.strip():
            raise ValidationError("system prompt cannot be empty")
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenAIChat:
    """Send ``{model, messages}`` and return ``choices[0].message.content``.

    A non-2xx status, an ``error`` field or an empty ``choices`` list all
    raise :class:`ProviderError`; network failures raise ``TransportError``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o",
        url: str = "https://api.openai.com/v1/chat/completions",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self._client = client or build_client(timeout)

    def close(self) -> None:
        self._client.close()

    def complete(
        self, prompt: str, *, system: str | None = None, timeout: float | None = None
    ) -> str:
        messages = build_messages(prompt, system)
        response = post_json(
            self._client,
            self.url,
            {"model": self.model, "messages": messages},
            api_key=self.api_key,
            timeout=timeout or self.timeout,
            provider="completion provider",
        )

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ProviderError(
                f"completion provider returned status {response.status_code}: "
                f"{error_message(body)}",
                status_code=response.status_code,
            )

        body = decode_json(response, provider="completion provider")
        if not isinstance(body, dict):
            raise ProviderError("completion provider returned an unexpected body")
        if body.get("error"):
            raise ProviderError(f"completion provider error: {error_message(body)}")

        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError("no response from completion provider")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise ProviderError("completion provider returned a malformed choice")
        content = message.get("content")
        if content is None:
            raise ProviderError("completion provider returned an empty message")
        return str(content).strip()
