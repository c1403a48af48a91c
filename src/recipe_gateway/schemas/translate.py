"""Schemas for translate requests and gateway responses."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TARGET_LANGUAGE = "Swedish"
DEFAULT_SOURCE_LANGUAGE = "auto"
DEFAULT_IMAGE_MIME = "image/jpeg"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    target_language: str = Field(default=DEFAULT_TARGET_LANGUAGE, alias="targetLanguage")
    source_language: str = Field(default=DEFAULT_SOURCE_LANGUAGE, alias="sourceLanguage")


class TextPayload(_Payload):
    """Recipe text pasted by the user."""

    type: Literal["text"] = "text"
    content: str


class UrlPayload(_Payload):
    """A recipe page the gateway should fetch. Already vetted by the SSRF guard."""

    type: Literal["url"] = "url"
    url: str


class ImagePayload(_Payload):
    """A base64-encoded photo of a recipe."""

    type: Literal["image"] = "image"
    image: str
    image_mime: str = Field(default=DEFAULT_IMAGE_MIME, alias="imageMime")


TranslateRequest = TextPayload | UrlPayload | ImagePayload


class TokenOut(BaseModel):
    """Response of token issuance. ``token`` is None when signing is disabled."""

    ok: Literal[True] = True
    token: dict[str, Any] | None


class RecipeOut(BaseModel):
    ok: Literal[True] = True
    recipe: dict[str, Any]


class GatewayErrorOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[False] = False
    error: str
    retry_after: int | None = Field(default=None, alias="retryAfter")
