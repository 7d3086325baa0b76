"""CRUD operations for record resolution history."""

from datetime import datetime, timedelta
from typing import Collection, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import RecordHistory, utcnow
from .address import upsert_address

DEDUP_WINDOW = timedelta(hours=1)


async def append_history(
    session: AsyncSession,
    record_id: int,
    address_id: Optional[int],
    resolved_ip: str,
    resolved_at: datetime,
) -> RecordHistory:
    """Append a history entry.

    Args:
        session: Database session
        record_id: Owning record
        address_id: Address row for the resolved IP
        resolved_ip: Resolved IPv4 literal
        resolved_at: Resolution timestamp

    Returns:
        Created history entry
    """
    entry = RecordHistory(
        record_id=record_id,
        address_id=address_id,
        resolved_ip=resolved_ip,
        resolved_at=resolved_at,
    )
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


async def get_last_history(
    session: AsyncSession, record_id: int
) -> Optional[RecordHistory]:
    """Get the most recent history entry of a record.

    Args:
        session: Database session
        record_id: Owning record

    Returns:
        Latest entry or None if the record has no history
    """
    result = await session.execute(
        select(RecordHistory)
        .where(RecordHistory.record_id == record_id)
        .order_by(RecordHistory.resolved_at.desc(), RecordHistory.id.desc())
    )
    return result.scalars().first()


async def list_history(
    session: AsyncSession, record_id: Optional[int] = None
) -> List[RecordHistory]:
    """Get history entries, newest first.

    Args:
        session: Database session
        record_id: Restrict to one record when given

    Returns:
        List of history entries
    """
    query = select(RecordHistory)
    if record_id is not None:
        query = query.where(RecordHistory.record_id == record_id)
    result = await session.execute(
        query.order_by(RecordHistory.resolved_at.desc(), RecordHistory.id.desc())
    )
    return list(result.scalars().all())


async def delete_all_history(session: AsyncSession) -> int:
    """Delete every history entry.

    Args:
        session: Database session

    Returns:
        Number of deleted entries
    """
    count = await session.scalar(select(func.count()).select_from(RecordHistory))
    await session.execute(delete(RecordHistory))
    await session.commit()
    return count or 0


async def get_last_batch(session: AsyncSession, record_id: int) -> List[RecordHistory]:
    """Get the entries written by the most recent lookup of a record.

    Entries tracked from one lookup share their resolved_at timestamp.

    Args:
        session: Database session
        record_id: Owning record

    Returns:
        Entries of the latest batch ordered by ID, empty if there is no history
    """
    last = await get_last_history(session, record_id)
    if last is None:
        return []

    result = await session.execute(
        select(RecordHistory)
        .where(RecordHistory.record_id == record_id)
        .where(RecordHistory.resolved_at == last.resolved_at)
        .order_by(RecordHistory.id)
    )
    return list(result.scalars().all())


async def track_resolutions(
    session: AsyncSession,
    record_id: int,
    resolved_ips: Collection[str],
    resolved_at: Optional[datetime] = None,
    window: timedelta = DEDUP_WINDOW,
) -> List[RecordHistory]:
    """Record the IPs one lookup of a record resolved to, skipping repeats.

    Nothing is written when the record's latest batch holds the same IPs and
    is younger than the window. Otherwise every IP is appended as a new batch
    sharing one timestamp, so a changed answer is always visible in the trail.

    Args:
        session: Database session
        record_id: Owning record
        resolved_ips: All IPs resolved in the lookup
        resolved_at: Resolution timestamp, defaults to now
        window: De-duplication window

    Returns:
        The new entries, empty when the lookup was de-duplicated
    """
    ips = sorted(set(resolved_ips))
    if not ips:
        return []
    resolved_at = resolved_at or utcnow()

    last_batch = await get_last_batch(session, record_id)
    if (
        last_batch
        and {entry.resolved_ip for entry in last_batch} == set(ips)
        and resolved_at - last_batch[0].resolved_at < window
    ):
        return []

    entries = []
    for ip in ips:
        address = await upsert_address(session, ip)
        entries.append(
            await append_history(session, record_id, address.id, ip, resolved_at)
        )
    return entries
