"""
Public IP resolution

Asks a list of independent "what is my IP" services, in order, for the
caller's public IPv4 address and records it as the current address.
"""

import ipaddress
from importlib.metadata import PackageNotFoundError, version
from typing import Optional, Sequence

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.crud.address import set_current_address, upsert_address
from ..errors import InvalidAddress, NoResolverAvailable
from ..logger import logger
from ..models import Address

# Enough for a dotted quad; echo service bodies are untrusted
MAX_BODY_BYTES = 15

PRIVATE_NETWORKS = (
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
)

try:
    USER_AGENT = f"hdns/{version('hdns')}"
except PackageNotFoundError:
    USER_AGENT = "hdns/dev"


def parse_ipv4(ip: str) -> ipaddress.IPv4Address:
    """Parse an IPv4 literal, raising InvalidAddress for anything else."""
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError as e:
        raise InvalidAddress(ip) from e
    if not isinstance(address, ipaddress.IPv4Address):
        raise InvalidAddress(ip, "not an IPv4 address")
    return address


def validate_address(ip: str) -> bool:
    """
    Check that a string is a usable public IPv4 address.

    Rejects unparsable input, IPv6, the unspecified address, RFC 1918
    private ranges, loopback and multicast addresses.
    """
    try:
        address = parse_ipv4(ip)
    except InvalidAddress:
        return False

    if address.is_unspecified or address.is_loopback or address.is_multicast:
        return False
    if any(address in network for network in PRIVATE_NETWORKS):
        return False
    return True


class PublicIPResolver:
    """
    Resolves the public IP by asking echo services one at a time.

    The first service returning a valid public IPv4 address wins; failing
    services are logged and skipped.
    """

    def __init__(
        self,
        resolvers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._resolvers = list(
            resolvers if resolvers is not None else settings.dns.ip_resolvers
        )
        self._timeout = timeout if timeout is not None else settings.dns.http_timeout

    @property
    def resolvers(self) -> list[str]:
        return list(self._resolvers)

    async def resolve(self) -> str:
        """
        Resolve the public IP address.

        Returns:
            The public IPv4 address as a string

        Raises:
            NoResolverAvailable: If every service failed
        """
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self._timeout),
            headers={"User-Agent": USER_AGENT},
        ) as session:
            for url in self._resolvers:
                try:
                    ip = await self._resolve_with(session, url)
                except (aiohttp.ClientError, TimeoutError, InvalidAddress) as e:
                    logger.error(f"resolver {url} failed: {type(e).__name__}: {e}")
                    continue

                logger.info(f"resolved public IP {ip} using resolver {url}")
                return ip

        raise NoResolverAvailable(
            "failed to resolve public IP address using all resolvers"
        )

    async def _resolve_with(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(url) as response:
            response.raise_for_status()
            body = b""
            while len(body) < MAX_BODY_BYTES:
                chunk = await response.content.read(MAX_BODY_BYTES - len(body))
                if not chunk:
                    break
                body += chunk

        ip = body.decode("ascii", errors="replace").strip()
        if not validate_address(ip):
            raise InvalidAddress(ip, f"invalid IP address from {url}")
        return ip


async def update_address(
    session: AsyncSession, resolver: Optional[PublicIPResolver] = None
) -> Address:
    """
    Resolve the public IP and make it the current address.

    The current flag is moved on every call, even when the IP did not change,
    so the address row reflects the latest confirmation.

    Args:
        session: Database session
        resolver: Resolver to use, defaults to the configured services

    Returns:
        The current address

    Raises:
        ResolutionFailure: If no resolver returned a usable address
    """
    resolver = resolver or PublicIPResolver()
    ip = await resolver.resolve()
    address = await upsert_address(session, ip)
    return await set_current_address(session, address)
