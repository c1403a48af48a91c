"""Validation of the decoded translate request body."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from recipe_gateway.core.errors import InputInvalid
from recipe_gateway.core.settings import Settings
from recipe_gateway.schemas.translate import (
    DEFAULT_IMAGE_MIME,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    ImagePayload,
    TextPayload,
    TranslateRequest,
    UrlPayload,
)
from recipe_gateway.services.ssrf import SSRFGuard

MAX_LANGUAGE_CHARS = 40
ALLOWED_IMAGE_MIMES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


@dataclass(frozen=True)
class PayloadLimits:
    """Size bounds for each payload variant."""

    text_min_chars: int = 20
    text_max_chars: int = 60_000
    image_min_chars: int = 100
    image_max_chars: int = 4_000_000

    @classmethod
    def from_settings(cls, source: Settings) -> PayloadLimits:
        return cls(
            text_min_chars=source.text_min_chars,
            text_max_chars=source.text_max_chars,
            image_min_chars=source.image_min_chars,
            image_max_chars=source.image_max_chars,
        )


def _language(value: Any, default: str, label: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise InputInvalid(f"Invalid {label} language.")
    language = value.strip() or default
    if len(language) > MAX_LANGUAGE_CHARS or not all(
        ch.isalpha() or ch in " -" for ch in language
    ):
        raise InputInvalid(f"Invalid {label} language.")
    return language


class PayloadValidator:
    """Turn a decoded JSON body into one typed payload variant, or raise `InputInvalid`.

    URL payloads are run through the SSRF guard here, before anything is
    fetched, so a blocked URL never costs a network round trip.
    """

    def __init__(self, limits: PayloadLimits, guard: SSRFGuard) -> None:
        self.limits = limits
        self.guard = guard

    def validate(self, body: Any) -> TranslateRequest:
        if not isinstance(body, Mapping):
            raise InputInvalid("Invalid request body: expected a JSON object.")

        target = _language(body.get("targetLanguage"), DEFAULT_TARGET_LANGUAGE, "target")
        source = _language(body.get("sourceLanguage"), DEFAULT_SOURCE_LANGUAGE, "source")
        kind = body.get("type")

        if kind == "text":
            return self._text(body.get("content"), target, source)
        if kind == "url":
            return self._url(body.get("url"), target, source)
        if kind == "image":
            return self._image(body.get("image"), body.get("imageMime"), target, source)
        raise InputInvalid("type must be text, url or image.")

    def _text(self, content: Any, target: str, source: str) -> TextPayload:
        if not isinstance(content, str) or len(content.strip()) < self.limits.text_min_chars:
            raise InputInvalid("Recipe text too short.")
        if len(content) > self.limits.text_max_chars:
            raise InputInvalid(f"Input too long (max {self.limits.text_max_chars} characters).")
        return TextPayload(content=content, target_language=target, source_language=source)

    def _url(self, url: Any, target: str, source: str) -> UrlPayload:
        if not isinstance(url, str):
            raise InputInvalid("Invalid URL.")
        safe = self.guard.check_url(url)
        return UrlPayload(url=safe.url, target_language=target, source_language=source)

    def _image(self, image: Any, mime: Any, target: str, source: str) -> ImagePayload:
        if not isinstance(image, str) or len(image) < self.limits.image_min_chars:
            raise InputInvalid("No image received.")
        if len(image) > self.limits.image_max_chars:
            raise InputInvalid("Image too large. Try a photo with a lower resolution.")
        image_mime = DEFAULT_IMAGE_MIME if mime in (None, "") else mime
        if image_mime not in ALLOWED_IMAGE_MIMES:
            raise InputInvalid("Invalid image type.")
        return ImagePayload(
            image=image,
            image_mime=image_mime,
            target_language=target,
            source_language=source,
        )
