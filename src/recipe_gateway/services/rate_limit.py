"""Per-fingerprint admission control.

A fixed window of ``window_seconds`` per fingerprint, counting requests up to
``max_requests``. Bursts that straddle a window boundary can briefly exceed
the limit; in exchange each request costs O(1) memory and time.

State lives in this process only. Each instance of a scaled deployment keeps
its own table.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from threading import Lock

from recipe_gateway.utils.clock import Clock, monotonic_clock

logger = logging.getLogger(__name__)

GC_AGE_WINDOWS = 2


@dataclass
class RateWindow:
    """Request count for one fingerprint inside the current window."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check."""

    allowed: bool
    count: int
    retry_after: int | None = None

    def __bool__(self) -> bool:
        return self.allowed


class SlidingWindowRateLimiter:
    """Lock-protected fixed-window counter keyed by origin fingerprint."""

    def __init__(
        self,
        *,
        window_seconds: float = 60,
        max_requests: int = 10,
        gc_threshold: int = 1000,
        clock: Clock = monotonic_clock,
        name: str = "gateway",
    ) -> None:
        if window_seconds <= 0 or max_requests <= 0:
            raise ValueError("window_seconds and max_requests must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.gc_threshold = gc_threshold
        self.name = name
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def admit(self, fingerprint: str) -> RateLimitResult:
        """Count one request for ``fingerprint`` and decide whether to let it in.

        Never raises. A denial carries ``retry_after``, the whole seconds
        left until the current window closes.
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(fingerprint)
            if window is None or now - window.window_start > self.window_seconds:
                self._windows[fingerprint] = RateWindow(count=1, window_start=now)
                return RateLimitResult(allowed=True, count=1)

            window.count += 1
            if window.count <= self.max_requests:
                return RateLimitResult(allowed=True, count=window.count)

            remaining = self.window_seconds - (now - window.window_start)
            retry_after = max(1, math.ceil(remaining))
            return RateLimitResult(allowed=False, count=window.count, retry_after=retry_after)

    def collect_garbage(self) -> int:
        """Drop stale windows once the table has grown past ``gc_threshold``.

        A window is stale when it started more than two window lengths ago.
        Returns the number of entries removed.
        """
        now = self._clock()
        cutoff = GC_AGE_WINDOWS * self.window_seconds
        with self._lock:
            if len(self._windows) <= self.gc_threshold:
                return 0
            stale = [
                key
                for key, window in self._windows.items()
                if now - window.window_start > cutoff
            ]
            for key in stale:
                del self._windows[key]
        if stale:
            logger.debug("Rate limiter %s dropped %d stale windows", self.name, len(stale))
        return len(stale)

    def reset(self) -> None:
        """Forget every window."""
        with self._lock:
            self._windows.clear()
