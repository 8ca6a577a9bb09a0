"""
Export Poller Service
Optional in-process trigger for the export batch runner
"""

import asyncio
from typing import Optional

from ..utils.logger import get_logger
from .export_worker import ExportWorker

logger = get_logger()


class ExportPoller:
    """Runs one export batch every `interval` seconds until stopped."""

    def __init__(self, worker: ExportWorker, interval: int, batch_size: int):
        self.worker = worker
        self.interval = interval
        self.batch_size = batch_size
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the polling task on the running loop"""
        if self._running:
            logger.warning("Export poller already running")
            return

        self._running = True
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Export poller started (interval: {self.interval}s, batch: {self.batch_size})")

    async def stop(self, timeout: Optional[float] = None):
        """
        Stop polling.

        A batch already running is allowed to finish so no job is left in
        `processing`; only the wait between batches is interrupted. With a
        timeout, a batch still running after `timeout` seconds is cancelled.
        """
        self._running = False
        if self._wake:
            self._wake.set()

        if self._task:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Export batch still running after {timeout}s, cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        logger.info("Export poller stopped")

    async def run_once(self):
        result = await self.worker.process_all_pending_jobs(self.batch_size)
        if result.processed:
            logger.info(
                f"Poll processed {result.processed} jobs "
                f"({result.succeeded} ok, {result.failed} failed)"
            )
        return result

    async def _run(self):
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Export poller error: {e}")

            if not self._running:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), self.interval)
            except asyncio.TimeoutError:
                pass
