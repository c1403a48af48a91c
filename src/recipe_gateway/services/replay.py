"""Replay protection for capability tokens."""

from __future__ import annotations

import logging
from threading import Lock

from recipe_gateway.utils.clock import Clock, wall_clock

logger = logging.getLogger(__name__)


class NonceLedger:
    """Record of nonces that have already unlocked a call.

    Maps nonce to the unix time after which the entry may be forgotten. The
    ledger only grows, except for pruning of expired entries, which happens
    inline once the table is larger than ``prune_threshold``.
    """

    def __init__(self, *, prune_threshold: int = 5000, clock: Clock = wall_clock) -> None:
        self.prune_threshold = prune_threshold
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def contains(self, nonce: str) -> bool:
        """Return True if the nonce has already been used."""
        with self._lock:
            return nonce in self._entries

    def claim(self, nonce: str, expires_at: float) -> bool:
        """Record ``nonce`` as used unless it already is.

        Check and insert happen under one lock, so of two concurrent
        verifications of the same token exactly one wins.
        """
        with self._lock:
            if nonce in self._entries:
                return False
            self._entries[nonce] = expires_at
            if len(self._entries) > self.prune_threshold:
                self._prune_locked(self._clock())
        return True

    def prune(self, now: float | None = None) -> int:
        """Forget entries whose expiry has passed. Returns how many were dropped."""
        with self._lock:
            return self._prune_locked(self._clock() if now is None else now)

    def _prune_locked(self, now: float) -> int:
        expired = [nonce for nonce, expires_at in self._entries.items() if expires_at < now]
        for nonce in expired:
            del self._entries[nonce]
        if expired:
            logger.debug("Pruned %d expired nonces", len(expired))
        return len(expired)
