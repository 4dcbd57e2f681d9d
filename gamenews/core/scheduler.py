"""
Periodic ingestion trigger.
"""
import asyncio
import logging
from typing import Optional, Set

from gamenews.core.ingest import IngestionCoordinator

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """
    Fires the coordinator on a fixed interval from a single asyncio task.

    Each run is spawned as its own task, so the timer keeps ticking while a
    slow run is in progress; ticks that land mid-run are dropped by the
    coordinator.
    """
    def __init__(self, coordinator: IngestionCoordinator, interval: float = 300,
                 run_on_start: bool = True):
        self.coordinator = coordinator
        self.interval = interval
        self.run_on_start = run_on_start
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._runs: Set[asyncio.Task] = set()

    async def _run_once(self):
        report = await self.coordinator.run()
        if report is not None:
            logger.info(f"News updated from RSS feeds: {len(report.candidates)} items")

    def _spawn_run(self):
        self.ticks += 1
        task = asyncio.ensure_future(self._run_once())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def run_forever(self):
        """Trigger runs until cancelled."""
        if self.run_on_start:
            logger.info("Fetching news on startup...")
            self._spawn_run()
        while True:
            await asyncio.sleep(self.interval)
            self._spawn_run()

    def start(self) -> asyncio.Task:
        """Start the timer task on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.run_forever())
        return self._task

    async def stop(self):
        """Cancel the timer and any run still in flight."""
        tasks = list(self._runs)
        if self._task is not None:
            tasks.append(self._task)
            self._task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
