from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ..config import ComparisonPolicy, DNSSettings, settings
from ..dns.scheduler import refresh_scheduler
from ..dns.service import reconciliation_engine
from ..logger import log_file_path, logger

router = APIRouter(tags=["config"])


class ConfigResponse(BaseModel):
    """Effective refresh and DNS settings"""

    refresh: str
    next_refresh: Optional[datetime] = None
    servers: List[str]
    query_timeout: float
    dial_timeout: float
    http_timeout: float
    ip_resolvers: List[str]
    comparison_policy: ComparisonPolicy
    history_dedup_window: int


@router.get("/config", response_model=ConfigResponse)
async def get_config():
    dns = settings.dns
    return ConfigResponse(
        refresh=refresh_scheduler.refresh,
        next_refresh=refresh_scheduler.get_next_run_time(),
        servers=dns.servers,
        query_timeout=dns.query_timeout,
        dial_timeout=dns.dial_timeout,
        http_timeout=dns.http_timeout,
        ip_resolvers=dns.ip_resolvers,
        comparison_policy=dns.comparison_policy,
        history_dedup_window=dns.history_dedup_window,
    )


@router.put("/config", response_model=ConfigResponse)
async def update_config(dns: DNSSettings):
    """
    Replace the DNS settings and restart the refresh schedule.

    The cron expression and server list are validated before anything is
    applied. Changes last until the service restarts.
    """
    await reconciliation_engine.reconfigure(dns)
    await refresh_scheduler.reschedule(dns.refresh)
    settings.dns = dns
    logger.info(
        f"DNS settings updated: refresh '{dns.refresh}', servers {dns.servers}, "
        f"policy {dns.comparison_policy}"
    )
    return await get_config()


@router.get("/log")
async def get_log():
    """Download the active log file."""
    path = log_file_path()
    if not path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Log file not found"
        )
    return FileResponse(path, media_type="text/plain", filename=path.name)
