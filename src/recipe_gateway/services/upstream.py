"""Client for the language-model API.

Wraps one OpenAI-compatible chat-completions call with a hard timeout and
maps everything that can go wrong onto the gateway error taxonomy. There is
no retry policy; a failed call surfaces to the caller immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from recipe_gateway.core.errors import (
    EmptyResponse,
    UpstreamAuthError,
    UpstreamNotConfigured,
    UpstreamRateLimited,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from recipe_gateway.core.logging import sanitize_for_log
from recipe_gateway.core.settings import Settings

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429

Message = dict[str, Any]


@dataclass(frozen=True)
class UpstreamConfig:
    """Immutable configuration for model API calls."""

    api_key: str | None
    url: str
    timeout_seconds: float
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call knobs."""

    model: str
    json_mode: bool = True
    temperature: float | None = None
    max_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def load_upstream_config(source: Settings) -> UpstreamConfig:
    """Build configuration object from settings."""
    return UpstreamConfig(
        api_key=source.upstream_api_key or None,
        url=source.upstream_url,
        timeout_seconds=float(source.upstream_timeout_seconds),
        temperature=source.upstream_temperature,
        max_tokens=source.upstream_max_tokens,
    )


class UpstreamClient:
    """HTTP client wrapper for the chat-completions endpoint."""

    def __init__(
        self,
        config: UpstreamConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_body(self, messages: list[Message], options: CompletionOptions) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": options.model,
            "messages": messages,
            "temperature": (
                options.temperature if options.temperature is not None else self.config.temperature
            ),
            "max_tokens": options.max_tokens or self.config.max_tokens,
        }
        if options.json_mode:
            body["response_format"] = {"type": "json_object"}
        body.update(options.extra)
        return body

    async def complete(self, messages: list[Message], options: CompletionOptions) -> str:
        """Send one chat completion and return the assistant's text.

        Raises:
            UpstreamNotConfigured: No API key; raised before any network I/O.
            UpstreamRateLimited: The API answered 429.
            UpstreamAuthError: The API answered 401 or 403.
            UpstreamTimeout: No answer within ``timeout_seconds``.
            UpstreamUnavailable: Any other transport failure or non-2xx status.
            EmptyResponse: The envelope holds no message text.
        """
        if not self.configured:
            raise UpstreamNotConfigured("Model API key is not configured.")

        client = await self._ensure_client()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        start_time = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.post(
                    self.config.url,
                    json=self._build_body(messages, options),
                    headers=headers,
                ),
                timeout=self.config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("Model call to %s timed out", options.model)
            raise UpstreamTimeout() from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(
                f"Model request failed: {exc.__class__.__name__}"
            ) from exc

        elapsed = time.monotonic() - start_time
        logger.info(
            "Model %s answered %d in %.2fs", options.model, response.status_code, elapsed
        )
        self._raise_for_status(response)
        return self._extract_text(response)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if response.is_success:
            return
        # Upstream bodies stay server-side, sanitized.
        detail = sanitize_for_log(response.text, 300)
        if status == HTTP_TOO_MANY_REQUESTS:
            logger.warning("Model API rate limited us: %s", detail)
            raise UpstreamRateLimited()
        if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            raise UpstreamAuthError(f"Model API rejected credentials ({status}): {detail}")
        raise UpstreamUnavailable(f"Model API error {status}: {detail}")

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError as exc:
            raise EmptyResponse("Model API returned a non-JSON envelope.") from exc
        try:
            text = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise EmptyResponse("Empty response from model API.") from exc
        if not isinstance(text, str) or not text.strip():
            raise EmptyResponse("Empty response from model API.")
        return text
