"""Cache sweeper — periodic eviction of expired entries.

Learn: Runs as a long-lived task in the FastAPI lifespan, the same way
a polling worker would. Lazy expiry in get() only covers keys somebody
reads again; the sweeper bounds memory for the ones nobody does.

Usage:
    sweeper = CacheSweeper(cache, interval=300)
    task = asyncio.create_task(sweeper.run_loop())
    ...
    sweeper.stop()
    task.cancel()
"""

import asyncio

import structlog

from taskhub.cache.store import TTLCache

logger = structlog.get_logger()


class CacheSweeper:
    """Background task that calls TTLCache.sweep() every `interval` seconds."""

    def __init__(self, cache: TTLCache, interval: float = 300.0):
        self.cache = cache
        self.interval = interval
        self._running = False

    async def run_loop(self) -> None:
        """Sleep, sweep, repeat until stopped."""
        self._running = True
        logger.info("cache_sweeper.started", interval=self.interval)

        while self._running:
            await asyncio.sleep(self.interval)
            if not self._running:
                break
            try:
                self.sweep_once()
            except Exception:
                logger.exception("cache_sweeper.error")

    def sweep_once(self) -> int:
        evicted = self.cache.sweep()
        if evicted:
            logger.debug("cache.swept", evicted=evicted, remaining=len(self.cache))
        return evicted

    def stop(self) -> None:
        """Signal the loop to stop after the current sleep."""
        self._running = False
        logger.info("cache_sweeper.stopping")
