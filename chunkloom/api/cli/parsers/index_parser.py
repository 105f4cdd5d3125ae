"""Index command argument parser for chunkloom CLI."""

import argparse
from pathlib import Path
from typing import Any, cast

from chunkloom.core.config.indexing_config import IndexingConfig
from chunkloom.core.config.llm_config import LLMConfig


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by every command."""
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file path",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="DuckDB database path (default: .chunkloom/db.duckdb)",
    )


def add_index_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add the index command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured index subparser
    """
    index_parser = subparsers.add_parser(
        "index",
        help="Index a directory",
        description=(
            "Chunk, summarize and embed the supported source files of a "
            "directory, re-processing only files that changed since the last run."
        ),
    )

    index_parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Directory path to index (default: current directory)",
    )
    index_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without processing files",
    )

    add_common_arguments(index_parser)
    IndexingConfig.add_cli_arguments(index_parser)
    LLMConfig.add_cli_arguments(index_parser)

    return cast(argparse.ArgumentParser, index_parser)


__all__: list[str] = ["add_common_arguments", "add_index_subparser"]
