"""Buffered per-job logging.

Entries are mirrored to loguru immediately and written to the job store in
batches by a background flush task. The most recent progress update is kept
and written with the next flush, so a burst of progress updates costs one
store call.
"""

import asyncio
from datetime import datetime
from typing import Any

from loguru import logger

from chunkloom.core.models import JobLog, ProgressUpdate
from chunkloom.interfaces.stores import JobStore

_LOGURU_LEVELS = {"DEBUG": "DEBUG", "INFO": "INFO", "WARN": "WARNING", "ERROR": "ERROR"}


class TaskLogger:
    """Collects log lines and progress for one job and persists them."""

    def __init__(
        self,
        job_id: str,
        job_store: JobStore,
        flush_interval: float = 0.5,
    ):
        self.job_id = job_id
        self._job_store = job_store
        self._flush_interval = flush_interval
        self._buffer: list[JobLog] = []
        self._pending_progress: ProgressUpdate | None = None
        self._flush_task: asyncio.Task | None = None
        self._flush_lock = asyncio.Lock()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def buffered_count(self) -> int:
        return len(self._buffer)

    def start(self) -> None:
        """Start the background flush task. Requires a running event loop."""
        if self._flush_task is None and not self._closed:
            self._flush_task = asyncio.create_task(self._auto_flush())

    def log(
        self,
        level: str,
        message: str,
        phase: str | None = None,
        file_path: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self._closed:
            logger.warning(f"[job {self.job_id}] Log after close dropped: {message}")
            return

        self._buffer.append(
            JobLog(
                job_id=self.job_id,
                level=level,
                message=message,
                phase=phase,
                file_path=file_path,
                metadata=metadata,
                created_at=datetime.now(),
            )
        )
        prefix = f"[{phase}] " if phase else ""
        suffix = f" - {file_path}" if file_path else ""
        logger.log(
            _LOGURU_LEVELS.get(level, "INFO"),
            f"[job {self.job_id}] {prefix}{message}{suffix}",
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, **kwargs)

    def warn(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, **kwargs)

    def progress(self, update: ProgressUpdate) -> None:
        """Record a progress update; usable directly as a pipeline callback."""
        if self._closed:
            return
        self._pending_progress = update
        logger.debug(f"[job {self.job_id}] {update.describe()}")

    async def flush(self) -> None:
        """Write buffered logs and the latest progress to the job store.

        Logs are put back at the front of the buffer if the write fails.
        """
        async with self._flush_lock:
            progress = self._pending_progress
            self._pending_progress = None
            if progress is not None:
                try:
                    await self._job_store.update_progress(
                        self.job_id, progress.phase.value, progress.current, progress.total
                    )
                except Exception:
                    if self._pending_progress is None:
                        self._pending_progress = progress
                    raise

            if not self._buffer:
                return

            entries = self._buffer
            self._buffer = []
            try:
                await self._job_store.add_logs(self.job_id, entries)
            except Exception:
                self._buffer = entries + self._buffer
                raise

    async def close(self) -> None:
        """Stop auto-flush and flush what is left. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        try:
            await self.flush()
        except Exception as e:
            logger.error(f"[job {self.job_id}] Final log flush failed: {e}")

    async def _auto_flush(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                await self.flush()
            except Exception as e:
                logger.warning(f"[job {self.job_id}] Log flush failed: {e}")
