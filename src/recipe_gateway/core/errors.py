"""Error taxonomy for the gateway.

Every failure a request can hit is one of the classes below. The ``kind``
alone decides the HTTP status a caller sees; whether the caller also sees the
message is decided later by the error sanitizer.
"""

from __future__ import annotations

from enum import Enum

HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_PAYLOAD_TOO_LARGE = 413
HTTP_UNSUPPORTED_MEDIA_TYPE = 415
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500


class ErrorKind(Enum):
    """Coarse failure classes that drive status codes and retry advice."""

    INPUT_INVALID = "input_invalid"
    ORIGIN_REJECTED = "origin_rejected"
    RATE_LIMITED = "rate_limited"
    UNSAFE_URL = "unsafe_url"
    UPSTREAM_TRANSIENT = "upstream_transient"
    UPSTREAM_FATAL = "upstream_fatal"
    UNUSABLE_OUTPUT = "unusable_output"
    INTERNAL = "internal"


KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INPUT_INVALID: HTTP_BAD_REQUEST,
    ErrorKind.ORIGIN_REJECTED: HTTP_FORBIDDEN,
    ErrorKind.RATE_LIMITED: HTTP_TOO_MANY_REQUESTS,
    ErrorKind.UNSAFE_URL: HTTP_BAD_REQUEST,
    ErrorKind.UPSTREAM_TRANSIENT: HTTP_INTERNAL_SERVER_ERROR,
    ErrorKind.UPSTREAM_FATAL: HTTP_INTERNAL_SERVER_ERROR,
    ErrorKind.UNUSABLE_OUTPUT: HTTP_INTERNAL_SERVER_ERROR,
    ErrorKind.INTERNAL: HTTP_INTERNAL_SERVER_ERROR,
}


class GatewayError(RuntimeError):
    """Base exception for every failure raised inside the gateway."""

    kind: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False
    status_override: int | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        if self.status_override is not None:
            return self.status_override
        return KIND_STATUS[self.kind]


# --- Caller mistakes ----------------------------------------------------------------


class InputInvalid(GatewayError):
    """The request body, shape or size is wrong."""

    kind = ErrorKind.INPUT_INVALID


class MethodNotAllowed(InputInvalid):
    status_override = HTTP_METHOD_NOT_ALLOWED

    def __init__(self, message: str = "Method not allowed.") -> None:
        super().__init__(message)


class PayloadTooLarge(InputInvalid):
    status_override = HTTP_PAYLOAD_TOO_LARGE

    def __init__(self, message: str = "Request body too large.") -> None:
        super().__init__(message)


class UnsupportedMediaType(InputInvalid):
    status_override = HTTP_UNSUPPORTED_MEDIA_TYPE

    def __init__(self, message: str = "Content-Type must be application/json.") -> None:
        super().__init__(message)


# --- Admission ----------------------------------------------------------------------


class OriginRejected(GatewayError):
    """The request came from an origin this frontend does not serve."""

    kind = ErrorKind.ORIGIN_REJECTED


class TokenRejected(OriginRejected):
    """The capability token is missing, malformed, expired, replayed or forged."""

    def __init__(self, message: str = "Invalid or expired token.") -> None:
        super().__init__(message)


class RateLimited(GatewayError):
    """Too many requests from one fingerprint inside the current window."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(self, retry_after: int, message: str = "Rate limited. Try again later.") -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UnsafeURL(GatewayError):
    """A caller-supplied URL points somewhere we refuse to fetch."""

    kind = ErrorKind.UNSAFE_URL

    def __init__(self, message: str = "Invalid URL.", *, url: str = "", reason: str = "") -> None:
        super().__init__(message)
        self.url = url
        self.reason = reason


# --- Remote failures ----------------------------------------------------------------


class UpstreamTransient(GatewayError):
    """A remote dependency failed in a way that may succeed on retry."""

    kind = ErrorKind.UPSTREAM_TRANSIENT
    retryable = True


class UpstreamUnavailable(UpstreamTransient):
    pass


class UpstreamRateLimited(UpstreamTransient):
    def __init__(
        self,
        message: str = "The recipe service is busy. Wait a minute and try again.",
    ) -> None:
        super().__init__(message)


class UpstreamTimeout(UpstreamTransient):
    def __init__(self, message: str = "The recipe service took too long to answer.") -> None:
        super().__init__(message)


class EmptyResponse(UpstreamTransient):
    pass


class FetchError(UpstreamTransient):
    """The caller's page could not be retrieved or read."""


class FetchTimeout(FetchError):
    def __init__(self, message: str = "Page took too long to load.") -> None:
        super().__init__(message)


class UpstreamFatal(GatewayError):
    """A remote dependency rejected us; an operator has to act."""

    kind = ErrorKind.UPSTREAM_FATAL


class UpstreamAuthError(UpstreamFatal):
    pass


class UpstreamNotConfigured(UpstreamFatal):
    pass


# --- Model output -------------------------------------------------------------------


class UnusableOutput(GatewayError):
    """The model answered, but not with something we can hand back."""

    kind = ErrorKind.UNUSABLE_OUTPUT
    retryable = True


class UnparsableResponse(UnusableOutput):
    def __init__(self, message: str = "No valid JSON in model response.") -> None:
        super().__init__(message)


class MissingField(UnusableOutput):
    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Recipe missing {field}.")
        self.field = field
