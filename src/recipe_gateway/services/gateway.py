"""Request gateway: the ordered chain of checks in front of the model call.

States, each a possible early exit::

    RECEIVED -> CORS-CHECKED -> CONTENT-TYPE-CHECKED -> SIZE-CHECKED
      -> RATE-ADMITTED -> TOKEN-VERIFIED -> INPUT-VALIDATED
      -> UPSTREAM-CALLED -> RESPONSE-EXTRACTED -> VALIDATED -> RESPONDED

Any failure jumps straight to RESPONDED through the error sanitizer.
Preflight requests stop after the CORS check. ``GET`` issues a capability
token instead of going through the chain.

The gateway holds no per-request state. Cross-request memory lives in the
rate limiters and the token ledger, both per process.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from recipe_gateway.core.errors import (
    InputInvalid,
    MethodNotAllowed,
    OriginRejected,
    PayloadTooLarge,
    RateLimited,
    TokenRejected,
    UnsupportedMediaType,
)
from recipe_gateway.core.settings import Settings, settings
from recipe_gateway.schemas.translate import GatewayErrorOut, RecipeOut, TokenOut
from recipe_gateway.services.extraction import extract_json, validate_recipe
from recipe_gateway.services.fetcher import SafeFetcher
from recipe_gateway.services.payloads import PayloadLimits, PayloadValidator
from recipe_gateway.services.rate_limit import SlidingWindowRateLimiter
from recipe_gateway.services.replay import NonceLedger
from recipe_gateway.services.sanitizer import ErrorSanitizer
from recipe_gateway.services.ssrf import SSRFGuard
from recipe_gateway.services.tokens import TokenService
from recipe_gateway.services.translation import TranslationService
from recipe_gateway.services.upstream import UpstreamClient, load_upstream_config
from recipe_gateway.utils.hash import client_identity, fingerprint

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NO_CONTENT = 204

ALLOWED_METHODS = "GET, POST, OPTIONS"
JSON_CONTENT_TYPE = "application/json"
PREFLIGHT_MAX_AGE = "600"


class GatewayState(Enum):
    RECEIVED = "received"
    CORS_CHECKED = "cors_checked"
    CONTENT_TYPE_CHECKED = "content_type_checked"
    SIZE_CHECKED = "size_checked"
    RATE_ADMITTED = "rate_admitted"
    TOKEN_VERIFIED = "token_verified"
    INPUT_VALIDATED = "input_validated"
    UPSTREAM_CALLED = "upstream_called"
    RESPONSE_EXTRACTED = "response_extracted"
    VALIDATED = "validated"


@dataclass
class GatewayResponse:
    """Transport-neutral response; the HTTP shell serialises it."""

    status_code: int
    body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CorsPolicy:
    """Which browser origins may call this frontend."""

    allowed_origins: tuple[str, ...] = ("*",)
    require_origin: bool = False

    @property
    def allow_any(self) -> bool:
        return "*" in self.allowed_origins

    def is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return not self.require_origin
        return self.allow_any or origin in self.allowed_origins

    def headers_for(self, origin: str | None) -> dict[str, str]:
        headers = {"Vary": "Origin"}
        if origin:
            headers["Access-Control-Allow-Origin"] = "*" if self.allow_any else origin
            headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            headers["Access-Control-Allow-Headers"] = "Content-Type"
        return headers


class RequestGateway:
    """Run one HTTP exchange through the admission chain."""

    def __init__(
        self,
        *,
        cors: CorsPolicy,
        tokens: TokenService,
        call_limiter: SlidingWindowRateLimiter,
        issue_limiter: SlidingWindowRateLimiter,
        validator: PayloadValidator,
        translator: TranslationService,
        sanitizer: ErrorSanitizer | None = None,
        client_ip_headers: tuple[str, ...] = (),
        trusted_proxy_hops: int = 1,
        max_body_bytes: int = 6_000_000,
    ) -> None:
        self.cors = cors
        self.tokens = tokens
        self.call_limiter = call_limiter
        self.issue_limiter = issue_limiter
        self.validator = validator
        self.translator = translator
        self.sanitizer = sanitizer or ErrorSanitizer()
        self.client_ip_headers = client_ip_headers
        self.trusted_proxy_hops = trusted_proxy_hops
        self.max_body_bytes = max_body_bytes

    async def handle(
        self,
        method: str,
        headers: Mapping[str, str],
        body: bytes,
        peer: str | None = None,
    ) -> GatewayResponse:
        """Process one request and always return a response; never raises."""
        lowered = {key.lower(): value for key, value in headers.items()}
        client = fingerprint(
            client_identity(lowered, self.client_ip_headers, peer, self.trusted_proxy_hops)
        )
        origin = lowered.get("origin")
        state = GatewayState.RECEIVED

        # Opportunistic sweep, attributed to whichever request gets here.
        self.call_limiter.collect_garbage()
        self.issue_limiter.collect_garbage()

        try:
            if not self.cors.is_allowed(origin):
                raise OriginRejected("Origin not allowed.")
            state = GatewayState.CORS_CHECKED
            cors_headers = self.cors.headers_for(origin)

            verb = method.upper()
            if verb == "OPTIONS":
                cors_headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
                return GatewayResponse(HTTP_NO_CONTENT, None, cors_headers)
            if verb == "GET":
                return self._issue_token(client, cors_headers)
            if verb != "POST":
                raise MethodNotAllowed()

            self._check_content_type(lowered.get("content-type", ""))
            state = GatewayState.CONTENT_TYPE_CHECKED

            self._check_size(lowered.get("content-length"), body)
            state = GatewayState.SIZE_CHECKED

            self._admit(self.call_limiter, client)
            state = GatewayState.RATE_ADMITTED

            decoded = self._decode(body)
            check = self.tokens.verify(decoded.get("token"))
            if not check:
                logger.warning("Token rejected (%s) for %s", check.value, client[:12])
                raise TokenRejected()
            state = GatewayState.TOKEN_VERIFIED

            payload = self.validator.validate(decoded)
            state = GatewayState.INPUT_VALIDATED

            reply = await self.translator.complete(payload)
            state = GatewayState.UPSTREAM_CALLED

            extracted = extract_json(reply)
            state = GatewayState.RESPONSE_EXTRACTED

            recipe = validate_recipe(extracted)
            state = GatewayState.VALIDATED

            response = GatewayResponse(
                HTTP_OK, RecipeOut(recipe=recipe.to_wire()).model_dump(), cors_headers
            )
        except Exception as exc:  # the sanitizer is the single exit for failures
            response = self._error_response(exc, client, origin, state)

        logger.info(
            "%s %s -> %d (%s)", method.upper(), client[:12], response.status_code, state.value
        )
        return response

    def _issue_token(self, client: str, cors_headers: dict[str, str]) -> GatewayResponse:
        self._admit(self.issue_limiter, client)
        token = self.tokens.issue()
        body = TokenOut(token=token.to_dict() if token else None).model_dump()
        return GatewayResponse(HTTP_OK, body, cors_headers)

    @staticmethod
    def _check_content_type(content_type: str) -> None:
        media_type = content_type.split(";")[0].strip().lower()
        if media_type != JSON_CONTENT_TYPE:
            raise UnsupportedMediaType()

    def _check_size(self, content_length: str | None, body: bytes) -> None:
        if content_length:
            try:
                declared = int(content_length)
            except ValueError as exc:
                raise InputInvalid("Invalid request: bad Content-Length.") from exc
            if declared > self.max_body_bytes:
                raise PayloadTooLarge()
        if len(body) > self.max_body_bytes:
            raise PayloadTooLarge()

    @staticmethod
    def _admit(limiter: SlidingWindowRateLimiter, client: str) -> None:
        result = limiter.admit(client)
        if not result.allowed:
            logger.warning("Rate limit (%s) hit by %s", limiter.name, client[:12])
            raise RateLimited(retry_after=result.retry_after or 1)

    @staticmethod
    def _decode(body: bytes) -> dict[str, Any]:
        try:
            decoded = json.loads(body or b"{}")
        except (ValueError, RecursionError) as exc:
            raise InputInvalid("Invalid JSON body.") from exc
        if not isinstance(decoded, dict):
            raise InputInvalid("Invalid JSON body: expected an object.")
        return decoded

    def _error_response(
        self,
        exc: Exception,
        client: str,
        origin: str | None,
        state: GatewayState,
    ) -> GatewayResponse:
        sanitized = self.sanitizer.sanitize(exc, fingerprint=client)
        headers = {"Vary": "Origin"}
        if state is not GatewayState.RECEIVED:
            headers = self.cors.headers_for(origin)
        if isinstance(exc, MethodNotAllowed):
            headers["Allow"] = ALLOWED_METHODS
        if sanitized.retry_after is not None:
            headers["Retry-After"] = str(sanitized.retry_after)
        body = GatewayErrorOut(error=sanitized.message, retry_after=sanitized.retry_after)
        return GatewayResponse(
            sanitized.status_code,
            body.model_dump(by_alias=True, exclude_none=True),
            headers,
        )

    async def close(self) -> None:
        await self.translator.upstream.close()
        await self.translator.fetcher.close()


def build_gateway(source: Settings) -> RequestGateway:
    """Wire a gateway and its components from settings."""
    guard = SSRFGuard(resolve_dns=source.fetch_resolve_dns)
    fetcher = SafeFetcher(
        guard,
        timeout_seconds=source.fetch_timeout_seconds,
        max_redirects=source.fetch_max_redirects,
        max_bytes=source.fetch_max_bytes,
        max_chars=source.page_max_chars,
        min_chars=source.page_min_chars,
        user_agent=source.fetch_user_agent,
    )
    tokens = TokenService(
        source.token_secret,
        ttl_seconds=source.token_ttl_seconds,
        clock_skew_seconds=source.token_clock_skew_seconds,
        grace_seconds=source.nonce_grace_seconds,
        ledger=NonceLedger(prune_threshold=source.nonce_ledger_prune_threshold),
    )
    if not source.signing_enabled:
        logger.warning("GATEWAY_TOKEN_SECRET is not set; token signing is disabled")
    if not source.upstream_api_key:
        logger.warning("GROQ_API_KEY is not set; translate calls will fail")

    return RequestGateway(
        cors=CorsPolicy(
            allowed_origins=tuple(source.cors_allowed_origins),
            require_origin=source.cors_require_origin,
        ),
        tokens=tokens,
        call_limiter=SlidingWindowRateLimiter(
            window_seconds=source.rate_limit_window_seconds,
            max_requests=source.rate_limit_max_requests,
            gc_threshold=source.rate_limit_gc_threshold,
            name="translate",
        ),
        issue_limiter=SlidingWindowRateLimiter(
            window_seconds=source.rate_limit_window_seconds,
            max_requests=source.token_rate_limit_max_requests,
            gc_threshold=source.rate_limit_gc_threshold,
            name="token",
        ),
        validator=PayloadValidator(PayloadLimits.from_settings(source), guard),
        translator=TranslationService(
            UpstreamClient(load_upstream_config(source)),
            fetcher,
            text_model=source.upstream_text_model,
            vision_model=source.upstream_vision_model,
        ),
        client_ip_headers=tuple(source.client_ip_headers),
        trusted_proxy_hops=source.trusted_proxy_hops,
        max_body_bytes=source.max_body_bytes,
    )


_gateway: RequestGateway | None = None


def get_gateway() -> RequestGateway:
    """Return the process-wide gateway, building it on first use."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway(settings)
    return _gateway


async def close_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
