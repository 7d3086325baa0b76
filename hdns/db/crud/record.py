"""CRUD operations for managed DNS records."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import DuplicateRecordError, RecordNotFoundError
from ...models import Address, Record, RecordCreate, RecordHistory, RecordUpdate

# Fields that change what is written at the provider
PROVIDER_FIELDS = ("token", "zone_id", "type", "name", "ttl")


async def list_records(session: AsyncSession) -> List[Record]:
    """Get all records ordered by ID.

    Args:
        session: Database session

    Returns:
        List of records with their linked address loaded
    """
    result = await session.execute(select(Record).order_by(Record.id))
    return list(result.scalars().all())


async def get_record(session: AsyncSession, record_id: int) -> Optional[Record]:
    """Get a record by its database ID.

    Args:
        session: Database session
        record_id: Record primary key

    Returns:
        Record or None if not found
    """
    result = await session.execute(
        select(Record)
        .where(Record.id == record_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _find_conflict(
    session: AsyncSession,
    name: str,
    zone_id: str,
    record_type: str,
    exclude_id: Optional[int] = None,
) -> Optional[Record]:
    query = select(Record).where(
        Record.name == name,
        Record.zone_id == zone_id,
        Record.type == record_type,
    )
    if exclude_id is not None:
        query = query.where(Record.id != exclude_id)
    result = await session.execute(query)
    return result.scalars().first()


async def create_record(session: AsyncSession, data: RecordCreate) -> Record:
    """Create a new record.

    Args:
        session: Database session
        data: Validated record fields

    Returns:
        Created record

    Raises:
        DuplicateRecordError: If name, zone and type are already taken
    """
    if await _find_conflict(session, data.name, data.zone_id, data.type):
        raise DuplicateRecordError(data.name, data.zone_id, data.type.value)

    record = Record(**data.model_dump())
    session.add(record)
    await session.commit()
    return await get_record(session, record.id)  # type: ignore[return-value]


async def update_record(
    session: AsyncSession, record_id: int, data: RecordUpdate
) -> Record:
    """Replace the editable fields of a record.

    Changing a field that is written to the provider drops the address link,
    so the next refresh cycle pushes the record again.

    Args:
        session: Database session
        record_id: Record primary key
        data: Validated record fields

    Returns:
        Updated record

    Raises:
        RecordNotFoundError: If the record does not exist
        DuplicateRecordError: If another record has the same name, zone and type
    """
    record = await get_record(session, record_id)
    if record is None:
        raise RecordNotFoundError(record_id)

    if await _find_conflict(
        session, data.name, data.zone_id, data.type, exclude_id=record_id
    ):
        raise DuplicateRecordError(data.name, data.zone_id, data.type.value)

    values = data.model_dump()
    if any(getattr(record, field) != values[field] for field in PROVIDER_FIELDS):
        # The provider holds a different record now, sync it again
        record.address = None
        record.address_id = None
        record.last_update = None

    for field, value in values.items():
        setattr(record, field, value)
    await session.commit()
    return await get_record(session, record_id)  # type: ignore[return-value]


async def delete_record(session: AsyncSession, record_id: int) -> None:
    """Delete a record together with its history.

    Args:
        session: Database session
        record_id: Record primary key

    Raises:
        RecordNotFoundError: If the record does not exist
    """
    record = await get_record(session, record_id)
    if record is None:
        raise RecordNotFoundError(record_id)

    await session.execute(
        delete(RecordHistory).where(RecordHistory.record_id == record_id)
    )
    await session.delete(record)
    await session.commit()


async def link_record_address(
    session: AsyncSession, record: Record, address: Address, updated_at: datetime
) -> Record:
    """Persist a successful provider write for a record.

    Only the address link and the last update timestamp are touched.

    Args:
        session: Database session
        record: Record that was pushed to the provider
        address: Address the provider now serves
        updated_at: Time of the provider write

    Returns:
        Updated record
    """
    stored = await get_record(session, record.id)
    if stored is None:
        raise RecordNotFoundError(record.id)

    stored.address_id = address.id
    stored.last_update = updated_at
    await session.commit()
    return await get_record(session, record.id)  # type: ignore[return-value]
