"""Worker runtime - wires the task processor to DuckDB and runs it until signalled."""

import asyncio
import signal

from loguru import logger

from chunkloom.core.config.config import Config
from chunkloom.providers.database.duckdb_provider import DuckDBProvider
from chunkloom.providers.factory import create_indexing_pipeline
from chunkloom.worker.task_processor import TaskProcessor


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set ``stop_event`` on SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()

    def _request_stop(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler; Ctrl+C still
            # arrives as KeyboardInterrupt
            logger.debug(f"Signal handler for {sig.name} not supported on this platform")


async def run_worker(config: Config, stop_event: asyncio.Event | None = None) -> None:
    """Run the task processor until ``stop_event`` is set.

    Jobs in flight when the stop is requested run to completion before the
    database is closed.
    """
    stop_event = stop_event or asyncio.Event()

    db = DuckDBProvider.from_config(config.database)
    await db.connect()
    try:
        processor = TaskProcessor(
            job_store=db.jobs,
            source_store=db.sources,
            pipeline=create_indexing_pipeline(config, db),
            config=config.worker,
        )
        await processor.start()
        logger.info("Worker running. Press Ctrl+C to stop.")

        await stop_event.wait()
        await processor.stop()
    finally:
        await db.disconnect()
