"""Fetch caller-supplied recipe pages without becoming an SSRF proxy.

Redirects are followed by hand so that each hop goes through `SSRFGuard`
before it is requested. The whole fetch, the first DNS check, every hop and
the markup stripping included, runs under one hard timeout, and at most
``max_bytes`` of body are read.
"""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from recipe_gateway.core.errors import FetchError, FetchTimeout
from recipe_gateway.core.logging import sanitize_for_log
from recipe_gateway.services.ssrf import SSRFGuard

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
NON_CONTENT_TAGS = ("script", "style", "noscript", "template")

_WHITESPACE = re.compile(r"\s+")


def html_to_text(markup: str, max_chars: int) -> str:
    """Strip markup from a page and return at most ``max_chars`` of plain text."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    text = _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
    return text[:max_chars]


class SafeFetcher:
    """Retrieve the readable text of a page at a caller-supplied URL."""

    def __init__(
        self,
        guard: SSRFGuard,
        *,
        timeout_seconds: float = 10.0,
        max_redirects: int = 5,
        max_bytes: int = 2_000_000,
        max_chars: int = 15_000,
        min_chars: int = 100,
        user_agent: str = "Mozilla/5.0 (compatible; Receptbot/1.0)",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.guard = guard
        self.timeout_seconds = timeout_seconds
        self.max_redirects = max_redirects
        self.max_bytes = max_bytes
        self.max_chars = max_chars
        self.min_chars = min_chars
        self.user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_seconds),
                    follow_redirects=False,
                    transport=self._transport,
                    headers={
                        "User-Agent": self.user_agent,
                        "Accept": "text/html,text/plain",
                    },
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_text(self, url: str) -> str:
        """Return the plain text of the page at ``url``.

        Raises:
            UnsafeURL: The URL, a redirect target or the final URL is blocked.
            FetchTimeout: The whole fetch took longer than ``timeout_seconds``.
            FetchError: Any other network failure, a non-2xx status, or a page
                with too little text to be a recipe.
        """
        try:
            text = await asyncio.wait_for(self._fetch(url), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("Fetch of %s timed out", sanitize_for_log(url, 200))
            raise FetchTimeout() from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Fetch of %s failed: %s",
                sanitize_for_log(url, 200),
                exc.__class__.__name__,
            )
            raise FetchError("Could not fetch page.") from exc

        if len(text) < self.min_chars:
            raise FetchError("Page appears empty or could not be read.")
        return text

    async def _fetch(self, url: str) -> str:
        safe = await self.guard.check_resolved(url)
        client = await self._ensure_client()
        current = safe.url
        for _ in range(self.max_redirects + 1):
            async with client.stream("GET", current) as response:
                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get("location")
                    if not location:
                        raise FetchError(f"Could not fetch page: HTTP {response.status_code}")
                    target = urljoin(current, location)
                    logger.debug("Following redirect to %s", sanitize_for_log(target, 200))
                    current = (await self.guard.check_resolved(target)).url
                    continue
                if not response.is_success:
                    raise FetchError(f"Could not fetch page: HTTP {response.status_code}")
                body = await self._read_body(response)
            # The final URL is vetted again before its body is trusted.
            if current != safe.url:
                self.guard.check_url(current)
            # Parsing is CPU-bound; keep it off the event loop.
            return await asyncio.to_thread(html_to_text, body, self.max_chars)
        raise FetchError("Could not fetch page: too many redirects")

    async def _read_body(self, response: httpx.Response) -> str:
        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            remaining = self.max_bytes - received
            if remaining <= 0:
                break
            chunks.append(chunk[:remaining])
            received += min(len(chunk), remaining)
        payload = b"".join(chunks)
        try:
            return payload.decode(response.encoding or "utf-8", errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")


