from typing import List

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from ..dns.hetzner import HetznerClient
from ..errors import ProviderError
from ..logger import logger

router = APIRouter(prefix="/zones", tags=["zones"])


class ZoneResponse(BaseModel):
    id: str
    name: str
    records_count: int


@router.get("", response_model=List[ZoneResponse])
async def get_zones(token: str = Query(min_length=1)):
    """List the zones visible to a Hetzner DNS API token."""
    try:
        async with HetznerClient(token) as client:
            zones = await client.list_zones()
    except ProviderError as e:
        logger.warning(f"failed to list zones: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)
        ) from e

    return [
        ZoneResponse(id=zone.id, name=zone.name, records_count=zone.records_count)
        for zone in zones
    ]
