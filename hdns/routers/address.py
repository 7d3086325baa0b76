from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.crud.address import (
    delete_addresses_except_most_recent,
    get_current_address,
    list_addresses,
)
from ..db.database import get_db
from ..dns.address import PublicIPResolver, update_address
from ..errors import ResolutionFailure
from ..models import AddressPublic

router = APIRouter(prefix="/address", tags=["address"])


class DeletedResponse(BaseModel):
    deleted: int


@router.get("", response_model=AddressPublic)
async def get_address(session: AsyncSession = Depends(get_db)):
    """Get the current public address."""
    address = await get_current_address(session)
    if address is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No public address resolved yet",
        )
    return address


@router.get("/history", response_model=List[AddressPublic])
async def get_address_history(session: AsyncSession = Depends(get_db)):
    """All observed addresses, newest first."""
    return await list_addresses(session)


@router.delete("/history", response_model=DeletedResponse)
async def delete_address_history(session: AsyncSession = Depends(get_db)):
    """Delete every address except the most recent and the current one."""
    deleted = await delete_addresses_except_most_recent(session)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No history to delete"
        )
    return DeletedResponse(deleted=deleted)


@router.post("/refresh", response_model=AddressPublic)
async def refresh_address(session: AsyncSession = Depends(get_db)):
    """Resolve the public IP now and make it the current address."""
    try:
        return await update_address(session, PublicIPResolver())
    except ResolutionFailure as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)
        ) from e
