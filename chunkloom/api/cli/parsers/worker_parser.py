"""Worker command argument parser for chunkloom CLI."""

import argparse
from typing import Any, cast

from .index_parser import add_common_arguments


def add_worker_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add the worker command subparser to the main parser."""
    worker_parser = subparsers.add_parser(
        "worker",
        help="Run the background job processor",
        description=(
            "Poll the job queue and run indexing and generation jobs until "
            "interrupted with SIGINT or SIGTERM."
        ),
    )

    worker_parser.add_argument(
        "--concurrency",
        type=int,
        help="Jobs run at once (default: 1)",
    )
    worker_parser.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds between polls for pending jobs (default: 5)",
    )
    worker_parser.add_argument(
        "--skip-llm",
        action="store_true",
        help="Do not generate chunk summaries",
    )

    add_common_arguments(worker_parser)

    return cast(argparse.ArgumentParser, worker_parser)


__all__: list[str] = ["add_worker_subparser"]
