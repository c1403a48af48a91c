"""Map internal failures to messages that are safe to show a caller.

Only messages starting with one of ``SAFE_PREFIXES`` are echoed. Everything
else, including every exception that is not a `GatewayError`, becomes
``GENERIC_ERROR_MESSAGE``. The original goes to the ``recipe_gateway.errors``
log channel after log-injection filtering, and nowhere else.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass

from recipe_gateway.core.errors import (
    KIND_STATUS,
    ErrorKind,
    GatewayError,
    RateLimited,
)
from recipe_gateway.core.logging import sanitize_for_log

error_log = logging.getLogger("recipe_gateway.errors")

MAX_TRACE_CHARS = 4000

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."

SAFE_PREFIXES: tuple[str, ...] = (
    "Invalid JSON body",
    "Invalid URL",
    "Invalid request",
    "Invalid target language",
    "Invalid source language",
    "Invalid image type",
    "type must be",
    "Recipe text too short",
    "Input too long",
    "No image received",
    "Image too large",
    "Recipe missing",
    "Rate limited",
    "Method not allowed",
    "Request body too large",
    "Content-Type must be",
    "Origin not allowed",
    "Invalid or expired token",
    "Could not fetch page",
    "Page appears empty",
    "Page took too long",
    "The recipe service is busy",
    "The recipe service took too long",
)

# Kinds whose failures point at a server-side problem worth an ERROR line.
_SERVER_SIDE_KINDS = frozenset(
    {
        ErrorKind.UPSTREAM_TRANSIENT,
        ErrorKind.UPSTREAM_FATAL,
        ErrorKind.UNUSABLE_OUTPUT,
        ErrorKind.INTERNAL,
    }
)


@dataclass(frozen=True)
class SanitizedError:
    """What the caller is allowed to learn about a failure."""

    status_code: int
    message: str
    kind: ErrorKind
    retry_after: int | None = None


def is_safe_message(message: str) -> bool:
    return message.startswith(SAFE_PREFIXES)


class ErrorSanitizer:
    """Single choke point between internal exceptions and HTTP responses."""

    def __init__(self, generic_message: str = GENERIC_ERROR_MESSAGE) -> None:
        self.generic_message = generic_message

    def to_client_message(self, error: BaseException) -> str:
        return self.sanitize(error).message

    def sanitize(self, error: BaseException, *, fingerprint: str = "-") -> SanitizedError:
        if isinstance(error, GatewayError):
            kind = error.kind
            status_code = error.status_code
            original = error.message
        else:
            kind = ErrorKind.INTERNAL
            status_code = KIND_STATUS[ErrorKind.INTERNAL]
            original = f"{error.__class__.__name__}: {error}"

        message = original if kind is not ErrorKind.INTERNAL and is_safe_message(original) else (
            self.generic_message
        )
        retry_after = error.retry_after if isinstance(error, RateLimited) else None

        level = logging.ERROR if kind in _SERVER_SIDE_KINDS else logging.WARNING
        detail = sanitize_for_log(original)
        if kind is ErrorKind.INTERNAL:
            # The traceback is flattened onto the same line as the message.
            trace = "".join(traceback.format_exception(error))
            detail = f"{detail} | {sanitize_for_log(trace, MAX_TRACE_CHARS)}"
        error_log.log(level, "%s %s [%s] %s", status_code, kind.value, fingerprint[:12], detail)
        return SanitizedError(
            status_code=status_code,
            message=message,
            kind=kind,
            retry_after=retry_after,
        )
