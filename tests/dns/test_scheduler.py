from unittest.mock import AsyncMock, MagicMock

import pytest

from hdns.dns.scheduler import RefreshScheduler
from hdns.dns.types import RecordOutcome


@pytest.fixture
def engine():
    engine = MagicMock()
    engine.run = AsyncMock(return_value={1: RecordOutcome.UPDATED})
    return engine


@pytest.fixture
async def scheduler(engine):
    scheduler = RefreshScheduler(engine=engine, refresh="*/30 * * * * *")
    yield scheduler
    await scheduler.shutdown()


class TestRefreshScheduler:
    @pytest.mark.asyncio
    async def test_start_registers_single_instance_job(self, scheduler):
        await scheduler.start()

        job = scheduler.scheduler.get_job(RefreshScheduler.JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
        assert scheduler.get_next_run_time() is not None

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_job(self, scheduler):
        await scheduler.start()
        await scheduler.start()

        assert len(scheduler.scheduler.get_jobs()) == 1

    @pytest.mark.asyncio
    async def test_reschedule(self, scheduler):
        await scheduler.start()
        await scheduler.reschedule("0 */5 * * * *")

        assert scheduler.refresh == "0 */5 * * * *"
        job = scheduler.scheduler.get_job(RefreshScheduler.JOB_ID)
        fields = {field.name: str(field) for field in job.trigger.fields}
        assert fields["minute"] == "*/5"

    @pytest.mark.asyncio
    async def test_reschedule_rejects_invalid_expression(self, scheduler):
        await scheduler.start()
        with pytest.raises(ValueError):
            await scheduler.reschedule("sometimes")
        assert scheduler.refresh == "*/30 * * * * *"

    @pytest.mark.asyncio
    async def test_no_next_run_before_start(self, scheduler):
        assert scheduler.get_next_run_time() is None

    @pytest.mark.asyncio
    async def test_tick_runs_engine_and_logs_summary(self, scheduler, engine, caplog):
        await scheduler._tick()

        engine.run.assert_awaited_once()
        assert "1=updated" in caplog.text

    @pytest.mark.asyncio
    async def test_tick_skipped_cycle(self, scheduler, engine, caplog):
        engine.run.return_value = None

        await scheduler._tick()

        assert "cycle finished" not in caplog.text

    @pytest.mark.asyncio
    async def test_tick_never_raises(self, scheduler, engine, caplog):
        engine.run.side_effect = RuntimeError("database is locked")

        assert await scheduler._tick() is None
        assert "DNS refresh cycle: RuntimeError: database is locked" in caplog.text
