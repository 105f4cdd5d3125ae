"""CLI entry point for chunkloom."""

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger

from chunkloom.core.config.config import Config


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Whether to enable verbose logging
    """
    logger.remove()

    if verbose:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            ),
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
                "<level>{message}</level>"
            ),
        )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the complete argument parser."""
    from .parsers import create_main_parser, setup_subparsers
    from .parsers.index_parser import add_index_subparser
    from .parsers.worker_parser import add_worker_subparser

    parser = create_main_parser()
    subparsers = setup_subparsers(parser)

    add_index_subparser(subparsers)
    add_worker_subparser(subparsers)

    return parser


def build_config(args: argparse.Namespace) -> Config:
    """Load configuration for a parsed command line."""
    target_dir = None
    if args.command == "index":
        target_dir = Path(args.path).expanduser().resolve()
    return Config.from_cli_args(args, config_file=args.config, target_dir=target_dir)


async def async_main(argv: list[str] | None = None) -> None:
    """Async main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(getattr(args, "verbose", False))

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        if args.command == "index":
            from .commands.index import index_command

            await index_command(args, config)
        elif args.command == "worker":
            from .commands.worker import worker_command

            await worker_command(args, config)
        else:
            logger.error(f"Unknown command: {args.command}")
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        logger.exception("Full error details:")
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
