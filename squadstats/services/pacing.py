# services/pacing.py – pause fixe entre deux joueurs

import asyncio


class Pacer:
    """Fixed delay the orchestrator waits out after each uncached player."""

    def __init__(self, delay_seconds: float = 0.9):
        self.delay_seconds = delay_seconds

    async def wait(self) -> None:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)


class NoopPacer(Pacer):
    """Never sleeps; counts how often it was consulted."""

    def __init__(self):
        super().__init__(0)
        self.calls = 0

    async def wait(self) -> None:
        self.calls += 1
