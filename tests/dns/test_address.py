"""
Tests for public IP validation and resolution.

Echo services are emulated with a local aiohttp test server.
"""

from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from hdns.db.crud.address import get_current_address, list_addresses
from hdns.dns.address import PublicIPResolver, parse_ipv4, update_address, validate_address
from hdns.errors import InvalidAddress, NoResolverAvailable


class TestValidateAddress:
    @pytest.mark.parametrize(
        "ip",
        ["0.0.0.0", "127.0.0.1", "10.0.0.5", "172.16.3.4", "192.168.1.1", "224.0.0.1"],
    )
    def test_rejected_ranges(self, ip):
        assert validate_address(ip) is False

    @pytest.mark.parametrize("ip", ["2001:db8::1", "::1", "not an ip", "", "1.2.3"])
    def test_rejected_non_ipv4(self, ip):
        assert validate_address(ip) is False

    @pytest.mark.parametrize("ip", ["203.0.113.7", "8.8.8.8", "100.64.0.1"])
    def test_public_addresses_accepted(self, ip):
        assert validate_address(ip) is True

    def test_parse_ipv4_rejects_ipv6(self):
        with pytest.raises(InvalidAddress) as exc_info:
            parse_ipv4("2001:db8::1")
        assert exc_info.value.ip == "2001:db8::1"


@pytest.fixture
async def echo_server():
    async def plain(request):
        return web.Response(text="203.0.113.7\n")

    async def private(request):
        return web.Response(text="192.168.0.10")

    async def broken(request):
        return web.Response(status=503, text="203.0.113.8")

    async def oversized(request):
        return web.Response(text="203.0.113.9" + "0" * 100)

    async def garbage(request):
        return web.Response(text="<html>nope</html>")

    app = web.Application()
    app.router.add_get("/plain", plain)
    app.router.add_get("/private", private)
    app.router.add_get("/broken", broken)
    app.router.add_get("/oversized", oversized)
    app.router.add_get("/garbage", garbage)

    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


class TestPublicIPResolver:
    @pytest.mark.asyncio
    async def test_first_valid_answer_wins(self, echo_server):
        resolver = PublicIPResolver(
            [str(echo_server.make_url("/plain")), str(echo_server.make_url("/private"))]
        )
        assert await resolver.resolve() == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_skips_failing_and_invalid_services(self, echo_server, caplog):
        resolver = PublicIPResolver(
            [
                str(echo_server.make_url("/broken")),
                str(echo_server.make_url("/private")),
                str(echo_server.make_url("/garbage")),
                str(echo_server.make_url("/plain")),
            ]
        )
        assert await resolver.resolve() == "203.0.113.7"
        assert "/broken failed" in caplog.text
        assert "/private failed" in caplog.text

    @pytest.mark.asyncio
    async def test_body_is_capped(self, echo_server):
        # Only the first 15 bytes are read, which is not a valid address here
        resolver = PublicIPResolver([str(echo_server.make_url("/oversized"))])
        with pytest.raises(NoResolverAvailable):
            await resolver.resolve()

    @pytest.mark.asyncio
    async def test_unreachable_service(self, echo_server):
        resolver = PublicIPResolver(
            ["http://127.0.0.1:9/", str(echo_server.make_url("/plain"))], timeout=2
        )
        assert await resolver.resolve() == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_all_services_fail(self, echo_server):
        resolver = PublicIPResolver(
            [str(echo_server.make_url("/broken")), str(echo_server.make_url("/garbage"))]
        )
        with pytest.raises(NoResolverAvailable):
            await resolver.resolve()

    @pytest.mark.asyncio
    async def test_no_services(self):
        with pytest.raises(NoResolverAvailable):
            await PublicIPResolver([]).resolve()


class TestUpdateAddress:
    @pytest.mark.asyncio
    async def test_moves_current_flag(self, test_database):
        resolver = PublicIPResolver([])
        resolver.resolve = AsyncMock(side_effect=["203.0.113.7", "198.51.100.4"])

        async with test_database() as session:
            first = await update_address(session, resolver)
            second = await update_address(session, resolver)

            assert first.ip == "203.0.113.7"
            assert second.ip == "198.51.100.4"

            current = await get_current_address(session)
            assert current.id == second.id

            addresses = await list_addresses(session)
            assert sum(1 for address in addresses if address.current) == 1

    @pytest.mark.asyncio
    async def test_same_ip_reuses_row(self, test_database):
        resolver = PublicIPResolver([])
        resolver.resolve = AsyncMock(return_value="203.0.113.7")

        async with test_database() as session:
            first = await update_address(session, resolver)
            second = await update_address(session, resolver)

            assert first.id == second.id
            assert len(await list_addresses(session)) == 1

    @pytest.mark.asyncio
    async def test_failure_leaves_current_address(self, test_database):
        resolver = PublicIPResolver([])
        resolver.resolve = AsyncMock(
            side_effect=["203.0.113.7", NoResolverAvailable("all failed")]
        )

        async with test_database() as session:
            await update_address(session, resolver)
            with pytest.raises(NoResolverAvailable):
                await update_address(session, resolver)

            current = await get_current_address(session)
            assert current.ip == "203.0.113.7"
