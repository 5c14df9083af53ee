"""Periodic background sync as a cancellable asyncio task."""

from __future__ import annotations

import asyncio

import structlog

from src.quotesync.sync.engine import SyncEngine

logger = structlog.get_logger(__name__)


class PeriodicSync:
    """Runs ``engine.run_cycle`` every ``interval_seconds``.

    Only one loop exists per instance: ``start`` cancels any running loop
    before scheduling a new one, and ``start``/``stop`` are serialized so
    overlapping restarts cannot leave an orphaned loop behind.

    Args:
        engine: Sync engine to drive.
        interval_seconds: Delay between cycles.
    """

    def __init__(self, engine: SyncEngine, interval_seconds: float = 30) -> None:
        self._engine = engine
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float:
        return self._interval

    async def _loop(self, run_immediately: bool) -> None:
        """Background loop that runs a cycle at the configured interval."""
        if not run_immediately:
            await asyncio.sleep(self._interval)
        while True:
            try:
                await self._engine.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("scheduler.sync_loop_error", exc_info=True)
            await asyncio.sleep(self._interval)

    async def start(self, run_immediately: bool = True, interval_seconds: float | None = None) -> None:
        """Start (or restart) the loop, replacing any existing one."""
        async with self._lock:
            await self._cancel()
            if interval_seconds is not None:
                self._interval = interval_seconds
            self._task = asyncio.create_task(
                self._loop(run_immediately), name="quotesync_periodic_sync"
            )
        logger.info("scheduler.started", interval=self._interval, run_immediately=run_immediately)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        async with self._lock:
            await self._cancel()

    async def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("scheduler.stopped")
