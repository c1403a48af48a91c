"""Gateway components: admission control, tokens, fetching, model calls, validation."""

from .gateway import RequestGateway, build_gateway
from .rate_limit import SlidingWindowRateLimiter
from .replay import NonceLedger
from .sanitizer import ErrorSanitizer
from .ssrf import SSRFGuard
from .tokens import TokenService

__all__ = [
    "ErrorSanitizer",
    "NonceLedger",
    "RequestGateway",
    "SSRFGuard",
    "SlidingWindowRateLimiter",
    "TokenService",
    "build_gateway",
]
