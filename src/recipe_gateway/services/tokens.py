"""Capability tokens that gate the expensive downstream call.

Issuance is cheap and stateless. Verification is the gate: a token passes at
most once, because its nonce is written to the ledger on first success.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from recipe_gateway.core import security
from recipe_gateway.services.replay import NonceLedger
from recipe_gateway.utils.clock import Clock, wall_clock

logger = logging.getLogger(__name__)


class TokenMode(Enum):
    """Whether tokens are signed and checked at all."""

    SIGNING_ENABLED = "enabled"
    SIGNING_DISABLED = "disabled"


class TokenCheck(Enum):
    """Result of verifying one token. Truthy only for the passing outcomes."""

    OK = "ok"
    DISABLED = "disabled"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    TOO_FAR_IN_FUTURE = "too_far_in_future"
    REPLAYED = "replayed"
    BAD_SIGNATURE = "bad_signature"

    def __bool__(self) -> bool:
        return self in (TokenCheck.OK, TokenCheck.DISABLED)


@dataclass(frozen=True)
class Token:
    """A signed, single-use capability."""

    nonce: str
    exp: int
    sig: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TokenService:
    """Issue and verify HMAC-signed capability tokens."""

    def __init__(
        self,
        secret: str | None,
        *,
        ttl_seconds: int = 300,
        clock_skew_seconds: int = 30,
        grace_seconds: int = 60,
        ledger: NonceLedger | None = None,
        clock: Clock = wall_clock,
    ) -> None:
        self._secret = secret or None
        self.ttl_seconds = ttl_seconds
        self.clock_skew_seconds = clock_skew_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock
        self.ledger = ledger or NonceLedger(clock=clock)

    @property
    def mode(self) -> TokenMode:
        if self._secret is None:
            return TokenMode.SIGNING_DISABLED
        return TokenMode.SIGNING_ENABLED

    def issue(self) -> Token | None:
        """Mint a new token, or return None when signing is disabled.

        Nothing is recorded here; the nonce is tracked from its first use.
        """
        if self._secret is None:
            return None
        nonce = security.generate_nonce()
        exp = int(self._clock()) + self.ttl_seconds
        return Token(nonce=nonce, exp=exp, sig=security.sign_token(self._secret, nonce, exp))

    def verify(self, token: Any) -> TokenCheck:
        """Check a token as received from a client and consume it on success.

        Args:
            token: Whatever the client sent in the ``token`` field.

        Returns:
            A `TokenCheck`; ``bool(result)`` tells whether the call may proceed.
        """
        if self._secret is None:
            return TokenCheck.DISABLED

        parsed = self._parse(token)
        if parsed is None:
            return TokenCheck.MALFORMED

        now = int(self._clock())
        if parsed.exp < now:
            return TokenCheck.EXPIRED
        if parsed.exp > now + self.ttl_seconds + self.clock_skew_seconds:
            return TokenCheck.TOO_FAR_IN_FUTURE

        if self.ledger.contains(parsed.nonce):
            return TokenCheck.REPLAYED

        expected = security.sign_token(self._secret, parsed.nonce, parsed.exp)
        if not security.signatures_match(expected, parsed.sig):
            return TokenCheck.BAD_SIGNATURE

        if not self.ledger.claim(parsed.nonce, parsed.exp + self.grace_seconds):
            return TokenCheck.REPLAYED
        return TokenCheck.OK

    @staticmethod
    def _parse(token: Any) -> Token | None:
        if not isinstance(token, Mapping):
            return None
        nonce = token.get("nonce")
        exp = token.get("exp")
        sig = token.get("sig")
        if not isinstance(nonce, str) or not security.is_hex(nonce, security.NONCE_HEX_LENGTH):
            return None
        # bool is an int subclass; reject it explicitly.
        if not isinstance(exp, int) or isinstance(exp, bool):
            return None
        if not isinstance(sig, str) or not security.is_hex(sig, security.SIGNATURE_HEX_LENGTH):
            return None
        return Token(nonce=nonce.lower(), exp=exp, sig=sig.lower())
