"""
Multi-server DNS resolution

Queries every configured DNS server for the A records of a domain at the
same time and reports one Resolution per server.
"""

import asyncio
import time
from typing import Optional, Sequence

import dns.asyncresolver
import dns.exception
import dns.nameserver

from ..config import settings, split_server
from ..errors import NoServersConfigured
from ..logger import logger
from .types import Resolution

WILDCARD_LABEL = "wildcard"


def build_domain(name: str, domain: str) -> str:
    """
    Build the domain to query for a record.

    `@` is the zone apex. Providers do not answer queries for a literal `*`,
    so wildcard records are queried through a sibling label instead.
    """
    if name == "@":
        return domain
    if name == "*":
        return f"{WILDCARD_LABEL}.{domain}"
    return f"{name}.{domain}"


class MultiServerDNSResolver:
    """Resolves a domain against several DNS servers concurrently."""

    def __init__(
        self,
        servers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        dial_timeout: Optional[float] = None,
    ) -> None:
        self._servers = list(servers if servers is not None else settings.dns.servers)
        self._timeout = timeout if timeout is not None else settings.dns.query_timeout
        self._dial_timeout = (
            dial_timeout if dial_timeout is not None else settings.dns.dial_timeout
        )

    @property
    def servers(self) -> list[str]:
        return list(self._servers)

    async def resolve(self, domain: str) -> list[Resolution]:
        """
        Resolve a domain against all configured servers.

        Every server gets its own task; a failing or slow server does not
        affect the others. Servers that miss the shared deadline are
        reported with a timeout error.

        Args:
            domain: Fully qualified domain to look up

        Returns:
            One Resolution per configured server, in configuration order

        Raises:
            NoServersConfigured: If no DNS server is configured
        """
        if not self._servers:
            raise NoServersConfigured("no DNS servers configured")

        tasks = [
            asyncio.create_task(self._query(server, domain)) for server in self._servers
        ]
        done, pending = await asyncio.wait(tasks, timeout=self._timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        timeout_ms = int(self._timeout * 1000)
        results = []
        for server, task in zip(self._servers, tasks):
            if task in done:
                results.append(task.result())
                continue

            logger.warning(
                f"DNS resolution of {domain} via {server} timed out after {timeout_ms}ms"
            )
            results.append(
                Resolution(
                    server=server,
                    response_time_ms=timeout_ms,
                    error=f"timed out after {timeout_ms}ms",
                )
            )

        return results

    async def _query(self, server: str, domain: str) -> Resolution:
        start = time.perf_counter()
        try:
            resolver = self._make_resolver(server)
            answer = await resolver.resolve(
                domain, "A", search=False, raise_on_no_answer=False
            )
            addresses = tuple(rdata.address for rdata in answer)
        except (dns.exception.DNSException, OSError, ValueError) as e:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.warning(
                f"DNS resolution of {domain} via {server} failed after "
                f"{elapsed_ms}ms: {type(e).__name__}: {e}"
            )
            return Resolution(
                server=server,
                response_time_ms=elapsed_ms,
                error=f"{type(e).__name__}: {e}",
            )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            f"DNS resolution of {domain} via {server} returned "
            f"{list(addresses)} in {elapsed_ms}ms"
        )
        return Resolution(
            server=server, addresses=addresses, response_time_ms=elapsed_ms
        )

    def _make_resolver(self, server: str) -> dns.asyncresolver.Resolver:
        host, port = split_server(server)
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.port = port
        resolver.nameservers = [dns.nameserver.Do53Nameserver(host, port)]
        resolver.timeout = self._dial_timeout
        resolver.lifetime = self._timeout
        return resolver
