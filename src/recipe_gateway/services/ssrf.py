"""
SSRF protection for caller-supplied URLs.

Every URL the gateway fetches on a caller's behalf passes through
`SSRFGuard`, and so does every redirect target on the way to the final page.

Blocked:
- Anything that is not https
- Loopback, private, link-local, shared (CGNAT), reserved, multicast and
  unspecified addresses, IPv4 and IPv6, including IPv4-mapped IPv6
- Cloud metadata endpoints by address and by hostname
- ``.local``, ``.localhost`` and ``.internal`` names
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from recipe_gateway.core.errors import UnsafeURL
from recipe_gateway.core.logging import sanitize_for_log

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[list[str]]]

ALLOWED_SCHEMES = frozenset({"https"})

BLOCKED_HOSTNAMES = frozenset(
    {
        "localhost",
        "localhost.localdomain",
        "ip6-localhost",
        "ip6-loopback",
        "metadata",
        "metadata.google.internal",
        "metadata.goog",
        "metadata.azure.com",
        "instance-data",
        "instance-data.ec2.internal",
    }
)

BLOCKED_SUFFIXES = (".local", ".localhost", ".internal")

METADATA_ADDRESSES = frozenset(
    ipaddress.ip_address(address)
    for address in (
        "169.254.169.254",  # AWS, GCP, Azure, OpenStack
        "169.254.170.2",    # AWS ECS task metadata
        "100.100.100.200",  # Alibaba Cloud
        "fd00:ec2::254",    # AWS IMDS over IPv6
    )
)

SHARED_ADDRESS_SPACE = ipaddress.ip_network("100.64.0.0/10")


@dataclass(frozen=True)
class SafeURL:
    """A URL that passed the guard. Only the guard constructs these."""

    url: str
    hostname: str

    def __str__(self) -> str:
        return self.url


async def system_resolver(hostname: str) -> list[str]:
    """Resolve ``hostname`` to its unique addresses using the event loop resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    addresses: list[str] = []
    for info in infos:
        address = str(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def _literal_address(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    candidate = hostname.strip("[]")
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        pass
    # inet_aton accepts the shorthand forms browsers do: 2130706433, 0x7f.1, 0177.0.0.1
    if candidate and all(part for part in candidate.split(".")):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(candidate))
        except OSError:
            return None
    return None


def is_blocked_address(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """Return True if connecting to ``address`` could reach something internal."""
    if isinstance(address, ipaddress.IPv6Address):
        mapped = address.ipv4_mapped or address.sixtofour
        if mapped is not None and is_blocked_address(mapped):
            return True
    if address in METADATA_ADDRESSES:
        return True
    if isinstance(address, ipaddress.IPv4Address) and address in SHARED_ADDRESS_SPACE:
        return True
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
        or not address.is_global
    )


class SSRFGuard:
    """Validate URLs against the blocklists above.

    ``check_url`` is pure: it never touches the network. ``check_resolved``
    additionally resolves the hostname and applies the same address rules to
    every answer.
    """

    def __init__(
        self,
        *,
        resolve_dns: bool = True,
        resolver: Resolver | None = None,
        additional_blocked_hosts: Iterable[str] = (),
    ) -> None:
        self.resolve_dns = resolve_dns
        self._resolver = resolver or system_resolver
        self.blocked_hostnames = BLOCKED_HOSTNAMES | {h.lower() for h in additional_blocked_hosts}

    def check_url(self, url: str) -> SafeURL:
        """Return a `SafeURL` or raise `UnsafeURL`."""
        if not isinstance(url, str) or not url.strip():
            raise self._reject(str(url), "empty")
        try:
            parts = urlsplit(url.strip())
            hostname = parts.hostname
            # Accessing .port validates it.
            parts.port  # noqa: B018
        except ValueError as exc:
            raise self._reject(url, f"unparsable: {exc}") from exc

        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise self._reject(url, f"scheme {parts.scheme!r}")
        if not hostname:
            raise self._reject(url, "missing hostname")
        if parts.username or parts.password:
            raise self._reject(url, "credentials in URL")

        hostname = hostname.rstrip(".").lower()
        if hostname in self.blocked_hostnames:
            raise self._reject(url, f"blocked host {hostname}")
        if hostname.endswith(BLOCKED_SUFFIXES):
            raise self._reject(url, f"blocked suffix on {hostname}")

        address = _literal_address(hostname)
        if address is not None and is_blocked_address(address):
            raise self._reject(url, f"blocked address {address}")

        return SafeURL(url=url.strip(), hostname=hostname)

    async def check_resolved(self, url: str) -> SafeURL:
        """Run `check_url`, then vet the resolved addresses of the hostname."""
        safe = self.check_url(url)
        if not self.resolve_dns or _literal_address(safe.hostname) is not None:
            return safe
        try:
            addresses = await self._resolver(safe.hostname)
        except OSError as exc:
            raise self._reject(url, f"resolution failed: {exc}") from exc
        if not addresses:
            raise self._reject(url, "no addresses")
        for raw in addresses:
            try:
                address = ipaddress.ip_address(raw.split("%")[0])
            except ValueError as exc:
                raise self._reject(url, f"bad resolved address {raw}") from exc
            if is_blocked_address(address):
                raise self._reject(url, f"{safe.hostname} resolves to {address}")
        return safe

    @staticmethod
    def _reject(url: str, reason: str) -> UnsafeURL:
        logger.warning("Refusing URL %s: %s", sanitize_for_log(url, 200), sanitize_for_log(reason))
        return UnsafeURL("Invalid URL.", url=url, reason=reason)
