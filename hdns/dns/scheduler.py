"""
Refresh scheduler - runs reconciliation cycles on a cron expression.
"""

from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import build_cron_trigger, settings
from ..logger import log_exception, logger
from .service import ReconciliationEngine, reconciliation_engine


class RefreshScheduler:
    """
    Schedules refresh cycles using APScheduler.

    The job runs with a single instance and coalesced misfires, so a trigger
    that fires while a cycle is still running is dropped instead of queued.
    """

    JOB_ID = "dns_refresh"

    def __init__(
        self,
        engine: ReconciliationEngine = reconciliation_engine,
        refresh: Optional[str] = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self._engine = engine
        self._refresh = refresh or settings.dns.refresh

    @property
    def refresh(self) -> str:
        return self._refresh

    async def start(self) -> None:
        """Start the scheduler and register the refresh job."""
        if not self.scheduler.running:
            self.scheduler.start()

        self.scheduler.add_job(
            self._tick,
            trigger=build_cron_trigger(self._refresh),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"DNS refresh scheduled with '{self._refresh}'")

    async def shutdown(self) -> None:
        """Shutdown the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def reschedule(self, refresh: str) -> None:
        """
        Change the refresh interval of the running job.

        Raises:
            ValueError: If the cron expression is invalid
        """
        trigger = build_cron_trigger(refresh)
        self._refresh = refresh
        if self.scheduler.get_job(self.JOB_ID):
            self.scheduler.reschedule_job(self.JOB_ID, trigger=trigger)
        logger.info(f"DNS refresh rescheduled with '{refresh}'")

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    @log_exception("DNS refresh cycle")
    async def _tick(self) -> None:
        outcomes = await self._engine.run()
        if outcomes is None:
            return
        summary = ", ".join(
            f"{record_id}={outcome.value}" for record_id, outcome in outcomes.items()
        )
        logger.info(f"DNS refresh cycle finished: {summary or 'no records'}")


# Global instance
refresh_scheduler = RefreshScheduler()
