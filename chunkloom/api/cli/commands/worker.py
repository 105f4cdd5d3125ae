"""Worker command module - runs the background job processor."""

import argparse
import asyncio

from chunkloom.core.config.config import Config
from chunkloom.worker.main import install_signal_handlers, run_worker


async def worker_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the worker command.

    Args:
        args: Parsed command-line arguments
        config: Validated configuration
    """
    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)
    await run_worker(config, stop_event)
