"""System endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from recipe_gateway.core.settings import settings
from recipe_gateway.services.gateway import RequestGateway, get_gateway

router = APIRouter(prefix="/system", tags=["system"])

GatewayDep = Annotated[RequestGateway, Depends(get_gateway)]


@router.get("/config")
async def get_public_config(gateway: GatewayDep) -> dict[str, object]:
    """Return a snapshot of public runtime configuration.

    Excludes secrets and keys; suitable for a frontend deciding whether to
    fetch tokens before calling.
    """
    return {
        "app": {"name": settings.app_name, "version": settings.app_version},
        "signing": gateway.tokens.mode.value,
        "token_ttl_seconds": gateway.tokens.ttl_seconds,
        "rate_limit": {
            "window_seconds": gateway.call_limiter.window_seconds,
            "max_requests": gateway.call_limiter.max_requests,
        },
        "upstream_configured": gateway.translator.upstream.configured,
    }
