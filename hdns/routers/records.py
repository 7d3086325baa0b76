"""
Record management API

CRUD for managed records plus manual refresh and on-demand resolution.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.crud.history import list_history
from ..db.crud.record import (
    create_record,
    delete_record,
    get_record,
    list_records,
    update_record,
)
from ..db.database import get_db
from ..dns.service import reconciliation_engine
from ..errors import (
    DuplicateRecordError,
    NoServersConfigured,
    ProviderError,
    RecordNotFoundError,
    ResolutionFailure,
)
from ..logger import logger
from ..models import (
    Record,
    RecordCreate,
    RecordHistoryPublic,
    RecordPublic,
    RecordUpdate,
)

router = APIRouter(prefix="/records", tags=["records"])


class ResolutionResponse(BaseModel):
    """Answer of one DNS server for a record"""

    server: str
    addresses: List[str]
    response_time: int
    error: Optional[str] = None


async def _get_record_or_404(session: AsyncSession, record_id: int) -> Record:
    record = await get_record(session, record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Record {record_id} not found",
        )
    return record


@router.get("", response_model=List[RecordPublic])
async def get_records(session: AsyncSession = Depends(get_db)):
    return await list_records(session)


@router.post("", response_model=RecordPublic, status_code=status.HTTP_201_CREATED)
async def post_record(data: RecordCreate, session: AsyncSession = Depends(get_db)):
    try:
        return await create_record(session, data)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/{record_id}", response_model=RecordPublic)
async def get_single_record(record_id: int, session: AsyncSession = Depends(get_db)):
    return await _get_record_or_404(session, record_id)


@router.put("/{record_id}", response_model=RecordPublic)
async def put_record(
    record_id: int, data: RecordUpdate, session: AsyncSession = Depends(get_db)
):
    try:
        return await update_record(session, record_id, data)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_record(record_id: int, session: AsyncSession = Depends(get_db)):
    try:
        await delete_record(session, record_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{record_id}/refresh", response_model=RecordPublic)
async def refresh_record(record_id: int):
    """
    Push the current public address to the provider for this record.

    The public IP is resolved first; the provider write happens even when
    the record already looks up to date.
    """
    try:
        record = await reconciliation_engine.force_update(record_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (ResolutionFailure, ProviderError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    logger.info(f"DNS record {record.fqdn} refreshed successfully")
    return record


@router.get("/{record_id}/resolve", response_model=List[ResolutionResponse])
async def resolve_record(record_id: int, session: AsyncSession = Depends(get_db)):
    """Ask every configured DNS server what the record resolves to."""
    record = await _get_record_or_404(session, record_id)
    try:
        results = await reconciliation_engine.resolve_record(record)
    except NoServersConfigured as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e

    return [
        ResolutionResponse(
            server=result.server,
            addresses=list(result.addresses),
            response_time=result.response_time_ms,
            error=result.error,
        )
        for result in results
    ]


@router.get("/{record_id}/history", response_model=List[RecordHistoryPublic])
async def get_record_history(record_id: int, session: AsyncSession = Depends(get_db)):
    await _get_record_or_404(session, record_id)
    return await list_history(session, record_id)
