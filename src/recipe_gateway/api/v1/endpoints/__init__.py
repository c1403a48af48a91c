"""API endpoint modules for version 1."""

from .system import router as system_router
from .translate import router as translate_router

__all__ = ["system_router", "translate_router"]
