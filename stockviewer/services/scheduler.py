"""Periodic Tally refresh running inside the API process.

At most one refresh runs at a time: an overlapping call (timer tick or manual
trigger) gets the previous result back instead of starting a second run.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

from stockviewer.services.refresh import RefreshResult

logger = logging.getLogger("uvicorn.error")

RefreshFn = Callable[[], Awaitable[RefreshResult]]


@dataclass
class SchedulerStatus:
    scheduler_running: bool
    is_refreshing: bool
    last_result: RefreshResult | None
    last_error: str | None


class RefreshScheduler:
    """Owns the timer task, the busy flag and the last outcome."""

    def __init__(
        self,
        refresh_fn: RefreshFn,
        interval_seconds: float = 3600.0,
        refresh_on_start: bool = False,
        enabled: bool = True,
    ):
        self._refresh_fn = refresh_fn
        self.interval_seconds = interval_seconds
        self.refresh_on_start = refresh_on_start
        self.enabled = enabled

        self._task: asyncio.Task[None] | None = None
        self.is_refreshing = False
        self.last_result: RefreshResult | None = None
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the timer. Returns False when disabled or already running."""
        if not self.enabled:
            logger.info("[scheduler] Disabled via TALLY_REFRESH_ENABLED=false")
            return False
        if self.running:
            logger.info("[scheduler] Already running, skipping start")
            return False

        logger.info(
            f"[scheduler] Starting: every {self.interval_seconds:g}s, "
            f"refresh on start: {self.refresh_on_start}"
        )
        self._task = asyncio.create_task(self._run(), name="tally-refresh-scheduler")
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("[scheduler] Stopped")

    async def _run(self) -> None:
        if self.refresh_on_start:
            await self.refresh()
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.refresh()

    async def refresh(self) -> RefreshResult:
        """Run one refresh now, unless one is already in flight."""
        if self.is_refreshing:
            logger.info("[scheduler] Refresh already in progress, skipping")
            if self.last_result is not None:
                return self.last_result
            return RefreshResult.failed("Refresh already in progress", company="", location=None)

        self.is_refreshing = True
        self.last_error = None
        try:
            try:
                result = await self._refresh_fn()
            except Exception as e:
                logger.exception(f"[scheduler] Refresh error: {e}")
                result = RefreshResult.failed(str(e), company="", location=None)

            self.last_result = result
            if result.success:
                logger.info(f"[scheduler] Refresh completed: {result.upserted_count} items synced")
            else:
                self.last_error = result.error or "Unknown error"
                logger.error(f"[scheduler] Refresh failed: {self.last_error}")
            return result
        finally:
            self.is_refreshing = False

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            scheduler_running=self.running,
            is_refreshing=self.is_refreshing,
            last_result=self.last_result,
            last_error=self.last_error,
        )
