"""CRUD operations for observed public addresses."""

from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import Address


async def get_address(session: AsyncSession, address_id: int) -> Optional[Address]:
    """Get an address by its database ID.

    Args:
        session: Database session
        address_id: Address primary key

    Returns:
        Address or None if not found
    """
    return await session.get(Address, address_id)


async def get_address_by_ip(session: AsyncSession, ip: str) -> Optional[Address]:
    """Get an address by its IP value.

    Args:
        session: Database session
        ip: IPv4 literal

    Returns:
        Address or None if not found
    """
    result = await session.execute(select(Address).where(Address.ip == ip))
    return result.scalar_one_or_none()


async def upsert_address(session: AsyncSession, ip: str) -> Address:
    """Find the address row for an IP, creating it on first observation.

    Args:
        session: Database session
        ip: IPv4 literal

    Returns:
        Existing or newly created address
    """
    address = await get_address_by_ip(session, ip)
    if address is not None:
        return address

    address = Address(ip=ip, current=False)
    session.add(address)
    try:
        await session.commit()
    except IntegrityError:
        # Another writer created the same IP first
        await session.rollback()
        address = await get_address_by_ip(session, ip)
        if address is None:
            raise
        return address

    await session.refresh(address)
    return address


async def set_current_address(session: AsyncSession, address: Address) -> Address:
    """Move the current flag to the given address.

    Clearing the previous holder and flagging the new one happen in a single
    transaction, so readers never observe two current addresses.

    Args:
        session: Database session
        address: Address that becomes current

    Returns:
        The refreshed current address
    """
    await session.execute(
        update(Address)
        .where(Address.current.is_(True))
        .where(Address.id != address.id)
        .values(current=False)
    )
    # Always written so updated_at records the latest confirmation
    await session.execute(
        update(Address).where(Address.id == address.id).values(current=True)
    )
    await session.commit()
    await session.refresh(address)
    return address


async def get_current_address(session: AsyncSession) -> Optional[Address]:
    """Get the address currently flagged as the public IP.

    Args:
        session: Database session

    Returns:
        Current address or None if no address was ever resolved
    """
    result = await session.execute(select(Address).where(Address.current.is_(True)))
    return result.scalars().first()


async def list_addresses(session: AsyncSession) -> List[Address]:
    """Get all addresses, newest first.

    Args:
        session: Database session

    Returns:
        List of addresses ordered by creation date descending
    """
    result = await session.execute(
        select(Address).order_by(Address.created_at.desc(), Address.id.desc())
    )
    return list(result.scalars().all())


async def delete_addresses_except_most_recent(session: AsyncSession) -> int:
    """Delete the address history, keeping the newest and the current address.

    Args:
        session: Database session

    Returns:
        Number of deleted addresses
    """
    addresses = await list_addresses(session)
    if len(addresses) <= 1:
        return 0

    stale_ids = [address.id for address in addresses[1:] if not address.current]
    if not stale_ids:
        return 0

    await session.execute(delete(Address).where(Address.id.in_(stale_ids)))
    await session.commit()
    return len(stale_ids)
