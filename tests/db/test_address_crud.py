"""
Unit tests for address CRUD operations.
"""

import pytest

from hdns.db.crud.address import (
    delete_addresses_except_most_recent,
    get_address,
    get_address_by_ip,
    get_current_address,
    list_addresses,
    set_current_address,
    upsert_address,
)
from hdns.db.crud.record import create_record, get_record, link_record_address
from hdns.models import RecordCreate, utcnow


class TestUpsertAddress:
    @pytest.mark.asyncio
    async def test_creates_once_per_ip(self, test_database):
        async with test_database() as session:
            first = await upsert_address(session, "203.0.113.7")
            second = await upsert_address(session, "203.0.113.7")

            assert first.id == second.id
            assert first.current is False
            assert (await get_address_by_ip(session, "203.0.113.7")).id == first.id
            assert (await get_address(session, first.id)).ip == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_unknown_ip(self, test_database):
        async with test_database() as session:
            assert await get_address_by_ip(session, "192.0.2.1") is None
            assert await get_current_address(session) is None


class TestSetCurrentAddress:
    @pytest.mark.asyncio
    async def test_exactly_one_current(self, test_database):
        ips = ["203.0.113.7", "198.51.100.4", "192.0.2.10", "203.0.113.7"]

        async with test_database() as session:
            for ip in ips:
                address = await upsert_address(session, ip)
                await set_current_address(session, address)

                addresses = await list_addresses(session)
                current = [a for a in addresses if a.current]
                assert len(current) == 1
                assert current[0].ip == ip

    @pytest.mark.asyncio
    async def test_visible_from_another_session(self, test_database):
        async with test_database() as session:
            address = await upsert_address(session, "203.0.113.7")
            await set_current_address(session, address)

        async with test_database() as session:
            current = await get_current_address(session)
            assert current.ip == "203.0.113.7"


class TestListAndPrune:
    @pytest.mark.asyncio
    async def test_newest_first(self, test_database):
        async with test_database() as session:
            for ip in ["203.0.113.1", "203.0.113.2", "203.0.113.3"]:
                await upsert_address(session, ip)

            addresses = await list_addresses(session)
            assert [a.ip for a in addresses] == ["203.0.113.3", "203.0.113.2", "203.0.113.1"]

    @pytest.mark.asyncio
    async def test_prune_keeps_most_recent(self, test_database):
        async with test_database() as session:
            for ip in ["203.0.113.1", "203.0.113.2", "203.0.113.3"]:
                await upsert_address(session, ip)

            assert await delete_addresses_except_most_recent(session) == 2
            assert [a.ip for a in await list_addresses(session)] == ["203.0.113.3"]

    @pytest.mark.asyncio
    async def test_prune_keeps_current(self, test_database):
        async with test_database() as session:
            current = await upsert_address(session, "203.0.113.1")
            await set_current_address(session, current)
            await upsert_address(session, "203.0.113.2")
            await upsert_address(session, "203.0.113.3")

            assert await delete_addresses_except_most_recent(session) == 1
            remaining = {a.ip for a in await list_addresses(session)}
            assert remaining == {"203.0.113.1", "203.0.113.3"}

    @pytest.mark.asyncio
    async def test_prune_nothing_to_delete(self, test_database):
        async with test_database() as session:
            assert await delete_addresses_except_most_recent(session) == 0
            await upsert_address(session, "203.0.113.1")
            assert await delete_addresses_except_most_recent(session) == 0

    @pytest.mark.asyncio
    async def test_prune_unlinks_records(self, test_database):
        async with test_database() as session:
            old = await upsert_address(session, "203.0.113.1")
            await upsert_address(session, "203.0.113.2")
            record = await create_record(
                session,
                RecordCreate(token="t", zone_id="z", name="home", domain="example.com"),
            )
            await link_record_address(session, record, old, utcnow())

            assert await delete_addresses_except_most_recent(session) == 1

            session.expunge_all()
            stored = await get_record(session, record.id)
            assert stored.address_id is None
            assert stored.last_update is not None
