# src/recipe_gateway/main.py
"""Main entry point for the Recipe Gateway application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from recipe_gateway.api.v1 import system_router, translate_router
from recipe_gateway.core.logging import configure_logging
from recipe_gateway.core.settings import settings
from recipe_gateway.services.gateway import close_gateway, get_gateway

configure_logging(settings.log_level)

app = FastAPI(
    title="Recipe Gateway",
    description="Hardened gateway in front of the recipe translation model",
    version=settings.app_version,
)

# CORS is decided by the gateway itself, per request, so no CORS middleware here.
app.add_middleware(GZipMiddleware)

app.include_router(translate_router, prefix="/api")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    get_gateway()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_gateway()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok", "signing": "enabled" if settings.signing_enabled else "disabled"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "translate": "/api/translate",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("recipe_gateway.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
