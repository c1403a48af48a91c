# tests/conftest.py
from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from recipe_gateway.core.settings import Settings
from recipe_gateway.main import app as fastapi_app
from recipe_gateway.services.fetcher import SafeFetcher
from recipe_gateway.services.gateway import CorsPolicy, RequestGateway, get_gateway
from recipe_gateway.services.payloads import PayloadLimits, PayloadValidator
from recipe_gateway.services.rate_limit import SlidingWindowRateLimiter
from recipe_gateway.services.replay import NonceLedger
from recipe_gateway.services.ssrf import SSRFGuard
from recipe_gateway.services.tokens import TokenService
from recipe_gateway.services.translation import TranslationService
from recipe_gateway.services.upstream import UpstreamClient, UpstreamConfig

TEST_SECRET = "test-secret-for-gateway-tokens"
START_TIME = 1_700_000_000.0

VALID_RECIPE: dict[str, Any] = {
    "titel": "Kanelbullar",
    "beskrivning": "Klassiska bullar.",
    "meta": {"portioner": "20 bullar", "totaltid": "2 timmar", "svarighetsgrad": "Medel"},
    "ingredienser": [
        {"grupp": "Deg", "mangd": "5 dl", "ingrediens": "mjölk"},
        {"grupp": "Deg", "mangd": "50 g", "ingrediens": "färsk jäst"},
    ],
    "steg": ["Värm mjölken.", "Knåda degen."],
    "noteringar": "",
}

RECIPE_PAGE = (
    "<html><head><style>body{color:red}</style><script>alert(1)</script></head>"
    "<body><h1>Cinnamon rolls</h1><p>"
    + "Mix flour, milk, yeast &amp; sugar. Knead the dough and let it rise. " * 4
    + "</p></body></html>"
)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def model_reply(content: str | None) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class UpstreamStub:
    """httpx handler standing in for the model API; records every request."""

    def __init__(self, reply: Callable[[httpx.Request], httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.reply = reply or (lambda _request: model_reply(json.dumps(VALID_RECIPE)))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.reply(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


class PageStub:
    """httpx handler standing in for the web; maps URL to response."""

    def __init__(self, pages: dict[str, httpx.Response] | None = None) -> None:
        self.pages = pages or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.pages.get(str(request.url), httpx.Response(404, text="not found"))


async def public_resolver(hostname: str) -> list[str]:
    return ["93.184.216.34"]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(GATEWAY_TOKEN_SECRET=TEST_SECRET, GROQ_API_KEY="gsk-test")


@pytest.fixture()
def upstream_stub() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture()
def page_stub() -> PageStub:
    return PageStub({"https://recipes.example.com/rolls": httpx.Response(200, html=RECIPE_PAGE)})


@pytest.fixture()
def guard() -> SSRFGuard:
    return SSRFGuard(resolver=public_resolver)


@pytest.fixture()
def make_gateway(
    clock: FakeClock,
    test_settings: Settings,
    upstream_stub: UpstreamStub,
    page_stub: PageStub,
    guard: SSRFGuard,
) -> Callable[..., RequestGateway]:
    """Build a gateway on fake time with stubbed network edges."""

    def _make(
        *,
        secret: str | None = TEST_SECRET,
        api_key: str | None = "gsk-test",
        max_requests: int = 10,
        allowed_origins: tuple[str, ...] = ("*",),
        require_origin: bool = False,
        max_body_bytes: int | None = None,
        client_ip_headers: tuple[str, ...] = (),
        trusted_proxy_hops: int = 1,
    ) -> RequestGateway:
        tokens = TokenService(
            secret,
            ttl_seconds=test_settings.token_ttl_seconds,
            clock_skew_seconds=test_settings.token_clock_skew_seconds,
            grace_seconds=test_settings.nonce_grace_seconds,
            ledger=NonceLedger(clock=clock),
            clock=clock,
        )
        upstream = UpstreamClient(
            UpstreamConfig(
                api_key=api_key,
                url=test_settings.upstream_url,
                timeout_seconds=5.0,
                temperature=test_settings.upstream_temperature,
                max_tokens=test_settings.upstream_max_tokens,
            ),
            transport=httpx.MockTransport(upstream_stub),
        )
        fetcher = SafeFetcher(guard, transport=httpx.MockTransport(page_stub))
        return RequestGateway(
            cors=CorsPolicy(allowed_origins=allowed_origins, require_origin=require_origin),
            tokens=tokens,
            call_limiter=SlidingWindowRateLimiter(
                window_seconds=60, max_requests=max_requests, clock=clock, name="translate"
            ),
            issue_limiter=SlidingWindowRateLimiter(
                window_seconds=60, max_requests=30, clock=clock, name="token"
            ),
            validator=PayloadValidator(PayloadLimits.from_settings(test_settings), guard),
            translator=TranslationService(
                upstream,
                fetcher,
                text_model=test_settings.upstream_text_model,
                vision_model=test_settings.upstream_vision_model,
            ),
            client_ip_headers=client_ip_headers,
            trusted_proxy_hops=trusted_proxy_hops,
            max_body_bytes=max_body_bytes or test_settings.max_body_bytes,
        )

    return _make


@pytest.fixture()
def gateway(make_gateway: Callable[..., RequestGateway]) -> RequestGateway:
    return make_gateway()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, gateway: RequestGateway) -> Iterator[TestClient]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_gateway, None)


def json_headers(**extra: str) -> dict[str, str]:
    headers = {"content-type": "application/json", "x-forwarded-for": "203.0.113.7"}
    headers.update(extra)
    return headers
