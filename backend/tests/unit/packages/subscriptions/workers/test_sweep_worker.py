"""
Unit tests for the sweep worker loop.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from packages.subscriptions.services.sweep_service import SweepReport
from packages.subscriptions.workers.sweep_worker import SweepWorker


@pytest.fixture
def sweep_service():
    service = MagicMock()
    service.run = AsyncMock(
        return_value=SweepReport(started_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    )
    return service


@pytest.mark.asyncio
class TestSweepWorker:
    async def test_run_once(self, sweep_service):
        worker = SweepWorker(sweep_service=sweep_service, run_once=True)

        await worker.start()

        sweep_service.run.assert_awaited_once()
        assert worker.running is False
        assert worker.last_report is sweep_service.run.return_value

    async def test_failed_run_does_not_raise(self, sweep_service):
        sweep_service.run.side_effect = RuntimeError("database unavailable")
        worker = SweepWorker(sweep_service=sweep_service, run_once=True)

        assert await worker.run_sweep() is None
        assert worker.last_report is None

    async def test_stop_ends_loop(self, sweep_service):
        worker = SweepWorker(sweep_service=sweep_service, interval_seconds=60)

        task = asyncio.create_task(worker.start())
        while sweep_service.run.await_count == 0:
            await asyncio.sleep(0)
        await worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert sweep_service.run.await_count == 1
        assert worker.running is False
