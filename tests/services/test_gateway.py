"""End-to-end tests for the request gateway chain."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from recipe_gateway.services.gateway import GatewayResponse, RequestGateway
from recipe_gateway.services.sanitizer import GENERIC_ERROR_MESSAGE
from tests.conftest import (
    VALID_RECIPE,
    FakeClock,
    PageStub,
    UpstreamStub,
    json_headers,
    model_reply,
)

RECIPE_TEXT = "Mix flour, milk and yeast. Knead well and bake the rolls at 220C."
PEER = "198.51.100.1"

GatewayFactory = Callable[..., RequestGateway]


async def _token(gateway: RequestGateway, **headers: str) -> dict[str, Any] | None:
    response = await gateway.handle("GET", json_headers(**headers), b"", PEER)
    assert response.status_code == 200
    return response.body["token"]


async def _post(
    gateway: RequestGateway,
    body: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> GatewayResponse:
    raw = json.dumps(body).encode()
    return await gateway.handle("POST", headers or json_headers(), raw, PEER)


async def _translate(gateway: RequestGateway, **fields: Any) -> GatewayResponse:
    body = {"type": "text", "content": RECIPE_TEXT, **fields}
    body["token"] = await _token(gateway)
    return await _post(gateway, body)


@pytest.mark.asyncio
async def test_successful_text_translation(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    response = await _translate(gateway, targetLanguage="Swedish")

    assert response.status_code == 200
    assert response.body == {"ok": True, "recipe": VALID_RECIPE}
    assert upstream_stub.calls == 1
    sent = upstream_stub.last_body()
    assert sent["model"] == "llama-3.3-70b-versatile"
    assert "Mix flour, milk and yeast" in sent["messages"][1]["content"]


@pytest.mark.asyncio
async def test_short_text_never_reaches_upstream(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    token = await _token(gateway)
    response = await _post(gateway, {"type": "text", "content": "hi", "token": token})

    assert response.status_code == 400
    assert response.body == {"ok": False, "error": "Recipe text too short."}
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_replayed_token_is_rejected(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    token = await _token(gateway)
    body = {"type": "text", "content": RECIPE_TEXT, "token": token}

    first = await _post(gateway, body)
    second = await _post(gateway, body)

    assert first.status_code == 200
    assert second.status_code == 403
    assert second.body["error"] == "Invalid or expired token."
    assert upstream_stub.calls == 1


@pytest.mark.asyncio
async def test_missing_and_forged_tokens(gateway: RequestGateway) -> None:
    missing = await _post(gateway, {"type": "text", "content": RECIPE_TEXT})
    token = await _token(gateway)
    token["sig"] = "0" * 64
    forged = await _post(gateway, {"type": "text", "content": RECIPE_TEXT, "token": token})

    assert missing.status_code == 403
    assert forged.status_code == 403


@pytest.mark.asyncio
async def test_expired_token(gateway: RequestGateway, clock: FakeClock) -> None:
    token = await _token(gateway)
    clock.advance(301)
    response = await _post(gateway, {"type": "text", "content": RECIPE_TEXT, "token": token})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_rate_limit_returns_retry_after(
    make_gateway: GatewayFactory, upstream_stub: UpstreamStub
) -> None:
    gateway = make_gateway(max_requests=2)
    for _ in range(2):
        assert (await _post(gateway, {})).status_code == 403

    limited = await _post(gateway, {})

    assert limited.status_code == 429
    assert limited.headers["Retry-After"] == "60"
    assert limited.body == {
        "ok": False,
        "error": "Rate limited. Try again later.",
        "retryAfter": 60,
    }
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_rate_limit_window_reopens(make_gateway: GatewayFactory, clock: FakeClock) -> None:
    gateway = make_gateway(max_requests=1)
    await _post(gateway, {})
    assert (await _post(gateway, {})).status_code == 429

    clock.advance(61)
    assert (await _post(gateway, {})).status_code == 403


@pytest.mark.asyncio
async def test_rate_limit_is_per_client(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(max_requests=1)
    raw = b"{}"
    await gateway.handle("POST", json_headers(), raw, "198.51.100.1")

    other = await gateway.handle("POST", json_headers(), raw, "198.51.100.2")
    again = await gateway.handle("POST", json_headers(), raw, "198.51.100.1")

    assert other.status_code == 403
    assert again.status_code == 429


@pytest.mark.asyncio
async def test_forwarded_headers_are_ignored_by_default(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(max_requests=1)
    statuses = set()
    for i in range(25):
        headers = json_headers()
        headers["x-forwarded-for"] = f"203.0.113.{i}"
        headers["x-real-ip"] = f"192.0.2.{i}"
        statuses.add((await _post(gateway, {}, headers)).status_code)

    assert statuses == {403, 429}
    assert len(gateway.call_limiter) == 1


@pytest.mark.asyncio
async def test_trusted_proxy_hop_defeats_spoofed_prefix(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(max_requests=1, client_ip_headers=("x-forwarded-for",))
    statuses = []
    for i in range(3):
        headers = json_headers()
        headers["x-forwarded-for"] = f"203.0.113.{i}, 192.0.2.50"
        statuses.append((await _post(gateway, {}, headers)).status_code)

    assert statuses == [403, 429, 429]


@pytest.mark.asyncio
async def test_method_not_allowed(gateway: RequestGateway) -> None:
    response = await gateway.handle("PUT", json_headers(), b"{}", PEER)
    assert response.status_code == 405
    assert response.headers["Allow"] == "GET, POST, OPTIONS"
    assert response.body["error"] == "Method not allowed."


@pytest.mark.asyncio
async def test_wrong_content_type(gateway: RequestGateway) -> None:
    headers = json_headers()
    headers["content-type"] = "text/plain"
    response = await gateway.handle("POST", headers, b"{}", PEER)
    assert response.status_code == 415


@pytest.mark.asyncio
async def test_content_type_with_charset_is_accepted(gateway: RequestGateway) -> None:
    headers = json_headers()
    headers["content-type"] = "application/json; charset=utf-8"
    response = await gateway.handle("POST", headers, b"{}", PEER)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_oversized_body(make_gateway: GatewayFactory, upstream_stub: UpstreamStub) -> None:
    gateway = make_gateway(max_body_bytes=100)
    response = await gateway.handle("POST", json_headers(), b"{" + b" " * 200 + b"}", PEER)
    assert response.status_code == 413
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_oversized_declared_length(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(max_body_bytes=100)
    headers = json_headers()
    headers["content-length"] = "5000"
    response = await gateway.handle("POST", headers, b"{}", PEER)
    assert response.status_code == 413


@pytest.mark.asyncio
async def test_invalid_json_body(gateway: RequestGateway) -> None:
    response = await gateway.handle("POST", json_headers(), b"{not json", PEER)
    assert response.status_code == 400
    assert response.body["error"] == "Invalid JSON body."


@pytest.mark.asyncio
async def test_deeply_nested_json_is_invalid_input(gateway: RequestGateway) -> None:
    response = await gateway.handle("POST", json_headers(), b"[" * 200_000, PEER)
    assert response.status_code == 400
    assert response.body["error"] == "Invalid JSON body."


@pytest.mark.asyncio
async def test_preflight(gateway: RequestGateway) -> None:
    response = await gateway.handle("OPTIONS", {"Origin": "https://app.example"}, b"", PEER)
    assert response.status_code == 204
    assert response.body is None
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
    assert response.headers["Access-Control-Max-Age"] == "600"


@pytest.mark.asyncio
async def test_allowed_origin_is_echoed(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(allowed_origins=("https://app.example",))
    response = await gateway.handle("OPTIONS", {"Origin": "https://app.example"}, b"", PEER)
    assert response.headers["Access-Control-Allow-Origin"] == "https://app.example"
    assert response.headers["Vary"] == "Origin"


@pytest.mark.asyncio
async def test_foreign_origin_is_rejected(
    make_gateway: GatewayFactory, upstream_stub: UpstreamStub
) -> None:
    gateway = make_gateway(allowed_origins=("https://app.example",))
    headers = json_headers()
    headers["origin"] = "https://evil.example"
    response = await gateway.handle("POST", headers, b"{}", PEER)

    assert response.status_code == 403
    assert response.body["error"] == "Origin not allowed."
    assert "Access-Control-Allow-Origin" not in response.headers
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_origin_can_be_required(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(require_origin=True)
    response = await gateway.handle("GET", json_headers(), b"", PEER)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_signing_disabled(make_gateway: GatewayFactory) -> None:
    gateway = make_gateway(secret=None)

    assert await _token(gateway) is None
    response = await _post(gateway, {"type": "text", "content": RECIPE_TEXT})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_api_key_is_generic_500(
    make_gateway: GatewayFactory, upstream_stub: UpstreamStub
) -> None:
    gateway = make_gateway(api_key=None)
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body["error"] == GENERIC_ERROR_MESSAGE
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_upstream_busy_message_is_passed_on(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    upstream_stub.reply = lambda _r: httpx.Response(429, json={"error": "slow down"})
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body["error"] == "The recipe service is busy. Wait a minute and try again."


@pytest.mark.asyncio
async def test_upstream_credentials_error_is_hidden(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    upstream_stub.reply = lambda _r: httpx.Response(401, json={"error": "bad key gsk-xyz"})
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body["error"] == GENERIC_ERROR_MESSAGE
    assert "gsk" not in json.dumps(response.body)


@pytest.mark.asyncio
async def test_prose_wrapped_reply_is_extracted(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    wrapped = f"Here is the recipe:\n```json\n{json.dumps(VALID_RECIPE)}\n```"
    upstream_stub.reply = lambda _r: model_reply(wrapped)
    response = await _translate(gateway)

    assert response.status_code == 200
    assert response.body["recipe"]["titel"] == "Kanelbullar"


@pytest.mark.asyncio
async def test_unparsable_reply(gateway: RequestGateway, upstream_stub: UpstreamStub) -> None:
    upstream_stub.reply = lambda _r: model_reply("Sorry, I cannot help with that.")
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body["error"] == GENERIC_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_reply_without_steps(gateway: RequestGateway, upstream_stub: UpstreamStub) -> None:
    upstream_stub.reply = lambda _r: model_reply(json.dumps({**VALID_RECIPE, "steg": []}))
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body["error"] == "Recipe missing steps."


@pytest.mark.asyncio
async def test_url_translation_fetches_page(
    gateway: RequestGateway, upstream_stub: UpstreamStub, page_stub: PageStub
) -> None:
    token = await _token(gateway)
    response = await _post(
        gateway, {"type": "url", "url": "https://recipes.example.com/rolls", "token": token}
    )

    assert response.status_code == 200
    assert len(page_stub.requests) == 1
    prompt = upstream_stub.last_body()["messages"][1]["content"]
    assert "Cinnamon rolls Mix flour" in prompt
    assert "<script>" not in prompt


@pytest.mark.asyncio
async def test_unsafe_url_is_never_fetched(
    gateway: RequestGateway, upstream_stub: UpstreamStub, page_stub: PageStub
) -> None:
    token = await _token(gateway)
    response = await _post(
        gateway, {"type": "url", "url": "https://169.254.169.254/latest/meta-data", "token": token}
    )

    assert response.status_code == 400
    assert response.body["error"] == "Invalid URL."
    assert page_stub.requests == []
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_missing_page(gateway: RequestGateway, upstream_stub: UpstreamStub) -> None:
    token = await _token(gateway)
    response = await _post(
        gateway, {"type": "url", "url": "https://recipes.example.com/missing", "token": token}
    )

    assert response.status_code == 500
    assert response.body["error"] == "Could not fetch page: HTTP 404"
    assert upstream_stub.calls == 0


@pytest.mark.asyncio
async def test_image_uses_vision_model(
    gateway: RequestGateway, upstream_stub: UpstreamStub
) -> None:
    token = await _token(gateway)
    response = await _post(
        gateway,
        {"type": "image", "image": "iVBOR" + "A" * 200, "imageMime": "image/png", "token": token},
    )

    assert response.status_code == 200
    sent = upstream_stub.last_body()
    assert sent["model"] == "meta-llama/llama-4-scout-17b-16e-instruct"
    parts = sent["messages"][1]["content"]
    assert parts[0]["image_url"]["url"].startswith("data:image/png;base64,iVBOR")
    assert parts[1]["type"] == "text"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_generic_500(
    gateway: RequestGateway, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def explode(payload: Any) -> str:
        raise RuntimeError("/srv/secret/path.py line 12")

    monkeypatch.setattr(gateway.translator, "complete", explode)
    response = await _translate(gateway)

    assert response.status_code == 500
    assert response.body == {"ok": False, "error": GENERIC_ERROR_MESSAGE}
