# src/recipe_gateway/utils/hash.py
"""Origin fingerprinting.

Raw client identities (IP addresses) are never kept. They are hashed into a
fixed-length key the moment they enter the gateway, and only that key is
used for rate-limit buckets and log lines.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from blake3 import blake3

FINGERPRINT_HEX_LENGTH = 64
UNKNOWN_IDENTITY = "unknown"


def fingerprint(identity: str) -> str:
    """Return the BLAKE3 hex digest of a client identity."""
    return blake3(identity.encode("utf-8")).hexdigest()


def client_identity(
    headers: Mapping[str, str],
    header_names: Iterable[str],
    peer: str | None = None,
    trusted_hops: int = 1,
) -> str:
    """Pick the apparent network identity of the caller.

    Only the headers named in ``header_names`` are consulted, and only
    deployments behind a proxy that overwrites them should name any. The
    first configured header carrying a value wins. For ``x-forwarded-for``
    style lists the entry ``trusted_hops`` from the right is used, since
    everything left of what our own proxies appended is caller-controlled.
    Falls back to the peer address supplied by the HTTP shell.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in header_names:
        entries = [part.strip() for part in lowered.get(name.lower(), "").split(",")]
        entries = [entry for entry in entries if entry]
        if entries:
            return entries[-min(max(trusted_hops, 1), len(entries))]
    return peer or UNKNOWN_IDENTITY
