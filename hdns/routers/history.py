from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.crud.history import delete_all_history, list_history
from ..db.database import get_db
from ..models import RecordHistoryPublic

router = APIRouter(prefix="/history", tags=["history"])


class DeletedResponse(BaseModel):
    deleted: int


@router.get("", response_model=List[RecordHistoryPublic])
async def get_history(session: AsyncSession = Depends(get_db)):
    """Resolution history of all records, newest first."""
    return await list_history(session)


@router.delete("", response_model=DeletedResponse)
async def clear_history(session: AsyncSession = Depends(get_db)):
    return DeletedResponse(deleted=await delete_all_history(session))
