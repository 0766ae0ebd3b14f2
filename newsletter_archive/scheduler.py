"""
Ingestion Scheduler.

Background task that periodically enqueues an ingestion run followed by a
missing-details sweep.
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .jobs import JobQueue


logger = logging.getLogger(__name__)

INGEST_JOB = "ingest"
RETRY_DETAILS_JOB = "retry_details"


class IngestionScheduler:
    """
    Background scheduler for newsletter ingestion.

    Runs are spaced hours apart; the pipeline itself rejects overlap if a
    manual trigger lands while a scheduled run is still going.
    """

    def __init__(
        self,
        queue: "JobQueue",
        interval_hours: float = 6,
        initial_delay: float = 10,
    ):
        self.queue = queue
        self.interval_hours = interval_hours
        self.initial_delay = initial_delay
        self.last_triggered: datetime | None = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the scheduling loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._schedule_loop())
        logger.info(f"Ingestion scheduler started (interval: {self.interval_hours} hours)")

    async def stop(self):
        """Stop the scheduling loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Ingestion scheduler stopped")

    async def trigger_now(self):
        """Enqueue an ingestion and a details sweep immediately."""
        self.last_triggered = datetime.now()
        logger.info(f"Scheduling newsletter ingestion at {self.last_triggered.isoformat()}")
        await self.queue.enqueue(INGEST_JOB)
        await self.queue.enqueue(RETRY_DETAILS_JOB)

    async def _schedule_loop(self):
        """Main scheduling loop."""
        # Initial delay to let the server fully start
        await asyncio.sleep(self.initial_delay)

        while self._running:
            try:
                await self.trigger_now()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in ingestion scheduler loop: {e}")

            await asyncio.sleep(self.interval_hours * 3600)
