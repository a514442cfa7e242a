"""Background sweep that evicts sources which went silent."""

import asyncio
import logging

from config import LIVENESS_WINDOW, REAPER_INTERVAL
from registry.connections import ConnectionRegistry
from registry.models import ConnectedSource

logger = logging.getLogger(__name__)


class StaleConnectionReaper:
    """Periodically evicts sources that stopped sending heartbeats or frames."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval: float = REAPER_INTERVAL,
        window: float = LIVENESS_WINDOW,
    ) -> None:
        self._registry = registry
        self._interval = interval
        self._window = window
        self._task: asyncio.Task | None = None
        self._on_evicted: list = []  # callbacks: async def fn(source)

    def on_evicted(self, callback) -> None:
        """Register a callback invoked once per evicted source."""
        self._on_evicted.append(callback)

    async def start(self) -> None:
        logger.info(
            f"Starting stale connection reaper "
            f"(every {self._interval}s, window {self._window}s)"
        )
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Stale connection reaper stopped")

    async def sweep(self) -> list[ConnectedSource]:
        """Run one eviction pass and return the evicted sources."""
        evicted = await self._registry.evict_stale(self._window)
        for source in evicted:
            for cb in self._on_evicted:
                try:
                    await cb(source)
                except Exception as e:
                    logger.error(f"Eviction callback error: {e}")
        return evicted

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Reaper sweep failed: {e}", exc_info=True)
