import asyncio

from gamenews.core.scheduler import IngestionScheduler


class CountingCoordinator:
    def __init__(self, duration=0.0):
        self.duration = duration
        self.started = 0
        self.active = False
        self.dropped = 0

    async def run(self):
        if self.active:
            self.dropped += 1
            return None
        self.active = True
        self.started += 1
        try:
            await asyncio.sleep(self.duration)
        finally:
            self.active = False
        return None


def test_runs_on_interval():
    async def scenario():
        coordinator = CountingCoordinator()
        scheduler = IngestionScheduler(coordinator, interval=0.01, run_on_start=True)
        scheduler.start()
        await asyncio.sleep(0.055)
        await scheduler.stop()
        return coordinator, scheduler

    coordinator, scheduler = asyncio.run(scenario())

    assert scheduler.ticks >= 3
    assert coordinator.started >= 2


def test_slow_run_does_not_block_timer():
    async def scenario():
        coordinator = CountingCoordinator(duration=1.0)
        scheduler = IngestionScheduler(coordinator, interval=0.01, run_on_start=True)
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        return coordinator, scheduler

    coordinator, scheduler = asyncio.run(scenario())

    assert coordinator.started == 1
    assert coordinator.dropped >= 1
    assert not coordinator.active


def test_stop_without_start():
    scheduler = IngestionScheduler(CountingCoordinator(), interval=1)

    asyncio.run(scheduler.stop())
