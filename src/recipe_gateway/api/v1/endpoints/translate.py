"""Translate endpoint.

Hands method, headers and raw body to the `RequestGateway` and serialises
whatever it returns. Every method is routed here so the gateway, not the
framework, decides on 405 and CORS.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from recipe_gateway.services.gateway import RequestGateway, get_gateway

router = APIRouter(tags=["translate"])

ROUTED_METHODS = ["GET", "POST", "OPTIONS", "PUT", "PATCH", "DELETE"]

GatewayDep = Annotated[RequestGateway, Depends(get_gateway)]


async def read_body(request: Request, limit: int) -> bytes:
    """Read at most ``limit + 1`` bytes of the request body.

    A declared ``Content-Length`` above ``limit`` reads nothing. Either way the
    gateway sees enough to answer 413 without the rest being buffered.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return b""
    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        chunks.append(chunk)
        received += len(chunk)
        if received > limit:
            break
    return b"".join(chunks)[: limit + 1]


@router.api_route("/translate", methods=ROUTED_METHODS)
async def translate(request: Request, gateway: GatewayDep) -> Response:
    """Issue a token (GET), answer a preflight (OPTIONS) or translate a recipe (POST)."""
    body = await read_body(request, gateway.max_body_bytes)
    peer = request.client.host if request.client else None
    result = await gateway.handle(request.method, request.headers, body, peer)
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)
