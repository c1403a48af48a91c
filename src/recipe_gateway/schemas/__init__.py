"""Pydantic schemas for the gateway's wire formats."""

from .recipe import Ingredient, RecipeMeta, ValidatedRecipe
from .translate import (
    GatewayErrorOut,
    ImagePayload,
    RecipeOut,
    TextPayload,
    TokenOut,
    TranslateRequest,
    UrlPayload,
)

__all__ = [
    "GatewayErrorOut",
    "ImagePayload",
    "Ingredient",
    "RecipeMeta",
    "RecipeOut",
    "TextPayload",
    "TokenOut",
    "TranslateRequest",
    "UrlPayload",
    "ValidatedRecipe",
]
