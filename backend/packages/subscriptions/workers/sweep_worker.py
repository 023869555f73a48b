"""
Worker that runs the subscription sweep on a fixed interval.
"""

import asyncio
from typing import Optional
from uuid import uuid4

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.dependencies import build_services
from packages.subscriptions.services.sweep_service import SweepReport, SweepService

logger = get_logger(__name__)


class SweepWorker:
    """Runs SweepService.run() every `interval_seconds` until stopped."""

    def __init__(
        self,
        sweep_service: Optional[SweepService] = None,
        interval_seconds: Optional[int] = None,
        run_once: bool = False,
        worker_id: Optional[str] = None,
    ):
        self.sweep_service = sweep_service or build_services().sweep
        self.interval_seconds = interval_seconds or settings.sweep_interval_seconds
        self.run_once = run_once
        self.worker_id = worker_id or f"subscription_sweep_worker_{uuid4()}"
        self.running = False
        self.last_report: Optional[SweepReport] = None
        self._stop_event = asyncio.Event()

    async def run_sweep(self) -> Optional[SweepReport]:
        try:
            self.last_report = await self.sweep_service.run()
        except Exception as e:
            # Selector or connection failure; next tick retries
            logger.error(
                f"Sweep run failed on {self.worker_id}: {e}",
                extra={"worker_id": self.worker_id},
                exc_info=True,
            )
            return None
        return self.last_report

    async def start(self):
        """Run the sweep loop."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event.clear()
        logger.info(
            f"Starting worker {self.worker_id}",
            extra={"interval_seconds": self.interval_seconds, "run_once": self.run_once},
        )

        while self.running:
            await self.run_sweep()
            if self.run_once:
                break
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
            except asyncio.TimeoutError:
                continue

        self.running = False

    async def stop(self):
        """Stop the loop after the current run."""
        self.running = False
        self._stop_event.set()
        logger.info(f"Worker {self.worker_id} stopped")
