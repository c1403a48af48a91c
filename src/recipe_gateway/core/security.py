"""HMAC primitives for capability tokens."""
from __future__ import annotations

import hashlib
import hmac
import secrets

NONCE_BYTES = 16
NONCE_HEX_LENGTH = NONCE_BYTES * 2
SIGNATURE_HEX_LENGTH = hashlib.sha256().digest_size * 2


def generate_nonce() -> str:
    """Return a fresh 16-byte random nonce, hex-encoded."""
    return secrets.token_hex(NONCE_BYTES)


def sign_token(secret: str, nonce: str, exp: int) -> str:
    """Return the hex HMAC-SHA256 of ``nonce:exp`` under ``secret``."""
    message = f"{nonce}:{exp}".encode()
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected_hex: str, supplied_hex: str) -> bool:
    """Compare two hex signatures in constant time.

    Both sides are compared as bytes so the comparison time depends only on
    the length, never on the position of the first differing character.
    """
    return hmac.compare_digest(expected_hex.encode("ascii"), supplied_hex.encode("ascii"))


def is_hex(value: str, length: int) -> bool:
    """Return True if ``value`` is exactly ``length`` hexadecimal characters."""
    if len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
