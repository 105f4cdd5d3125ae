"""Argument parsers for the chunkloom CLI."""

import argparse
from typing import Any

from chunkloom import __version__


def create_main_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkloom",
        description="Incremental code indexing with AST-aware chunking",
    )
    parser.add_argument(
        "--version", action="version", version=f"chunkloom {__version__}"
    )
    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> Any:
    return parser.add_subparsers(dest="command", help="Available commands")


__all__ = ["create_main_parser", "setup_subparsers"]
