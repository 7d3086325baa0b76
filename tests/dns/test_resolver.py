import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import dns.resolver
import pytest

from hdns.dns.resolver import MultiServerDNSResolver, build_domain
from hdns.dns.types import Resolution
from hdns.errors import NoServersConfigured


class TestBuildDomain:
    def test_apex(self):
        assert build_domain("@", "example.com") == "example.com"

    def test_wildcard(self):
        assert build_domain("*", "example.com") == "wildcard.example.com"

    def test_subdomain(self):
        assert build_domain("www", "example.com") == "www.example.com"

    def test_nested_label(self):
        assert build_domain("a.b", "example.com") == "a.b.example.com"


def answer(*addresses: str) -> list:
    return [SimpleNamespace(address=address) for address in addresses]


class TestMultiServerDNSResolver:
    @pytest.mark.asyncio
    async def test_no_servers(self):
        resolver = MultiServerDNSResolver(servers=[])
        with pytest.raises(NoServersConfigured):
            await resolver.resolve("example.com")

    @pytest.mark.asyncio
    async def test_one_resolution_per_server_in_order(self):
        resolver = MultiServerDNSResolver(
            servers=["9.9.9.9:53", "1.1.1.1:53", "8.8.8.8:53"], timeout=1
        )
        answers = {
            "9.9.9.9": answer("203.0.113.7"),
            "1.1.1.1": answer("203.0.113.7", "198.51.100.4"),
            "8.8.8.8": answer(),
        }

        def make_resolver(server):
            mock = MagicMock()
            mock.resolve = AsyncMock(return_value=answers[server.split(":")[0]])
            return mock

        with patch.object(resolver, "_make_resolver", side_effect=make_resolver):
            results = await resolver.resolve("www.example.com")

        assert [r.server for r in results] == ["9.9.9.9:53", "1.1.1.1:53", "8.8.8.8:53"]
        assert results[0].addresses == ("203.0.113.7",)
        assert results[1].addresses == ("203.0.113.7", "198.51.100.4")
        # No answer is a successful empty resolution
        assert results[2].succeeded
        assert results[2].addresses == ()

    @pytest.mark.asyncio
    async def test_query_arguments(self):
        resolver = MultiServerDNSResolver(servers=["9.9.9.9:53"], timeout=1)
        mock = MagicMock()
        mock.resolve = AsyncMock(return_value=answer("203.0.113.7"))

        with patch.object(resolver, "_make_resolver", return_value=mock):
            await resolver.resolve("www.example.com")

        mock.resolve.assert_awaited_once_with(
            "www.example.com", "A", search=False, raise_on_no_answer=False
        )

    @pytest.mark.asyncio
    async def test_failing_server_reports_error(self):
        resolver = MultiServerDNSResolver(servers=["9.9.9.9:53", "1.1.1.1:53"], timeout=1)

        def make_resolver(server):
            mock = MagicMock()
            if server.startswith("9.9.9.9"):
                mock.resolve = AsyncMock(side_effect=dns.resolver.NXDOMAIN())
            else:
                mock.resolve = AsyncMock(return_value=answer("203.0.113.7"))
            return mock

        with patch.object(resolver, "_make_resolver", side_effect=make_resolver):
            results = await resolver.resolve("missing.example.com")

        assert not results[0].succeeded
        assert "NXDOMAIN" in results[0].error
        assert results[1].addresses == ("203.0.113.7",)

    @pytest.mark.asyncio
    async def test_slow_server_times_out(self):
        resolver = MultiServerDNSResolver(servers=["slow:53", "fast:53"], timeout=0.2)

        async def query(server, domain):
            if server == "slow:53":
                await asyncio.sleep(5)
            return Resolution(server=server, addresses=("203.0.113.7",), response_time_ms=1)

        with patch.object(resolver, "_query", side_effect=query):
            results = await resolver.resolve("www.example.com")

        assert results[0].server == "slow:53"
        assert results[0].error == "timed out after 200ms"
        assert results[0].response_time_ms == 200
        assert results[1].addresses == ("203.0.113.7",)

    def test_make_resolver_uses_server_endpoint(self):
        resolver = MultiServerDNSResolver(
            servers=["9.9.9.9:5353"], timeout=3, dial_timeout=1
        )
        dns_resolver = resolver._make_resolver("9.9.9.9:5353")

        nameserver = dns_resolver.nameservers[0]
        assert nameserver.address == "9.9.9.9"
        assert nameserver.port == 5353
        assert dns_resolver.timeout == 1
        assert dns_resolver.lifetime == 3
