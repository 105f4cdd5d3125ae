"""Cooperative cancellation for running jobs.

A token polls the job store for a job's cancellation flag and exposes the
result as an ``asyncio.Event`` that the indexing pipeline checks at its
checkpoints.
"""

import asyncio

from loguru import logger

from chunkloom.core.exceptions import TaskCancelledError
from chunkloom.interfaces.stores import JobStore


class CancellationToken:
    """Polls a job's cancellation status and signals when it is set."""

    def __init__(self, job_id: str, job_store: JobStore, poll_interval: float = 2.0):
        self.job_id = job_id
        self._job_store = job_store
        self._poll_interval = poll_interval
        self._signal = asyncio.Event()
        self._poll_task: asyncio.Task | None = None

    @property
    def signal(self) -> asyncio.Event:
        return self._signal

    @property
    def is_cancelled(self) -> bool:
        return self._signal.is_set()

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self) -> None:
        if self._poll_task is not None:
            return
        self._poll_task = asyncio.create_task(self._poll())

    async def stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def check_once(self) -> bool:
        """Query the store once. A store failure reads as "not cancelled"."""
        if self._signal.is_set():
            return True
        try:
            cancelled = await self._job_store.is_cancelled(self.job_id)
        except Exception as e:
            logger.warning(f"Cancellation check failed for job {self.job_id}: {e}")
            return False
        if cancelled:
            self._signal.set()
        return self._signal.is_set()

    def throw_if_cancelled(self) -> None:
        if self._signal.is_set():
            raise TaskCancelledError(self.job_id)

    async def _poll(self) -> None:
        while not self._signal.is_set():
            await asyncio.sleep(self._poll_interval)
            try:
                if await self._job_store.is_cancelled(self.job_id):
                    logger.info(f"Job {self.job_id} cancellation requested")
                    self._signal.set()
            except Exception as e:
                logger.warning(f"Cancellation poll failed for job {self.job_id}: {e}")
