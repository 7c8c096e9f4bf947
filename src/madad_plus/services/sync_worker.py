"""Periodic background synchronization of the offline report queue.

Connectivity transitions already trigger a sync pass, but transition events
can be missed. This worker retries on a fixed timer while the monitor
reports the device as online.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from madad_plus.core.settings import settings
from madad_plus.services.connectivity import ConnectivityMonitor
from madad_plus.services.offline_queue import OfflineQueueError, OfflineReportQueue

# Configure logger for this module
logger = logging.getLogger(__name__)


class ReportSyncWorker:
    """Runs ``OfflineReportQueue.sync`` on an interval."""

    def __init__(
        self,
        queue: OfflineReportQueue,
        monitor: ConnectivityMonitor,
        interval_seconds: float | None = None,
    ) -> None:
        """Initialize the sync worker.

        Args:
            queue: Queue to drain.
            monitor: Connectivity source; passes are skipped while offline.
            interval_seconds: Seconds between passes. ``0`` disables the worker.
                Defaults to ``OFFLINE_QUEUE_SYNC_INTERVAL_SECONDS``.
        """
        self.queue = queue
        self.monitor = monitor
        if interval_seconds is None:
            interval_seconds = settings.offline_queue_sync_interval_seconds
        self.interval_seconds = float(interval_seconds)
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    async def start(self) -> None:
        """Start the background synchronization loop."""

        if not self.enabled:
            return

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background synchronization loop."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def run_once(self) -> None:
        """Run a single pass if the device is online."""
        if not self.monitor.is_online():
            return

        if await self.queue.pending_count() == 0:
            return

        result = await self.queue.sync()
        if result.synced or result.failed:
            logger.info(
                "Periodic sync finished: %d synced, %d failed", result.synced, result.failed
            )

    async def _run(self) -> None:
        interval = max(0.1, self.interval_seconds)

        while not self._stopping.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            if self._stopping.is_set():
                return

            try:
                await self.run_once()
            except OfflineQueueError as e:
                logger.warning("ReportSyncWorker encountered storage error: %s", e)
            except Exception:
                logger.exception("ReportSyncWorker pass failed unexpectedly")
