"""Indexing configuration for chunkloom.

This module provides configuration for file discovery and collection,
including ignore rules and include globs.
"""

import argparse
import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Ignore rules applied to every source, in .gitignore syntax
DEFAULT_EXCLUDES: list[str] = [
    # Dependencies
    "node_modules",
    "vendor",
    "bower_components",
    ".pnpm",
    # Build outputs
    "dist",
    "build",
    "out",
    ".next",
    ".nuxt",
    "__pycache__",
    "*.pyc",
    ".tox",
    "*.egg-info",
    # IDE and editor
    ".idea",
    ".vscode",
    "*.swp",
    "*.swo",
    "*~",
    # Version control
    ".git",
    ".svn",
    ".hg",
    # OS files
    ".DS_Store",
    "Thumbs.db",
    # Test coverage
    "coverage",
    ".nyc_output",
    "htmlcov",
    # Logs
    "*.log",
    "logs",
    # Environment
    ".env",
    ".env.*",
    "!.env.example",
    # Lock files
    "package-lock.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "poetry.lock",
    "Pipfile.lock",
]


class IndexingConfig(BaseModel):
    """Configuration for file indexing behavior.

    Controls how files are discovered, filtered and read.
    """

    force_reindex: bool = Field(
        default=False, description="Treat every file as added on the next run"
    )

    use_gitignore: bool = Field(
        default=True, description="Apply the root .gitignore to discovery"
    )
    max_file_size_mb: int = Field(
        default=10, description="Skip files larger than this (MB)"
    )

    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns a file must match (empty = every supported file)",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Extra ignore patterns on top of the built-in excludes",
    )

    @field_validator("include", "exclude")
    def validate_patterns(cls, v: list[str]) -> list[str]:  # noqa: N805
        """Strip blanks and drop duplicates while keeping order."""
        seen: set[str] = set()
        result = []
        for pattern in v:
            pattern = pattern.strip()
            if pattern and pattern not in seen:
                seen.add(pattern)
                result.append(pattern)
        return result

    @field_validator("max_file_size_mb")
    def validate_max_file_size(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("max_file_size_mb must be positive")
        return v

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add indexing-related CLI arguments."""
        parser.add_argument(
            "--include",
            action="append",
            help="Glob a file must match to be indexed (repeatable)",
        )
        parser.add_argument(
            "--exclude",
            action="append",
            help="Additional ignore pattern (repeatable)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Re-index every file instead of only changed ones",
        )
        parser.add_argument(
            "--no-gitignore",
            action="store_true",
            help="Do not apply the root .gitignore",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load indexing config from environment variables."""
        config: dict[str, Any] = {}

        if force_reindex := os.getenv("CHUNKLOOM_INDEXING__FORCE_REINDEX"):
            config["force_reindex"] = force_reindex.lower() in ("true", "1", "yes")

        # Comma-separated include/exclude patterns
        if include := os.getenv("CHUNKLOOM_INDEXING__INCLUDE"):
            config["include"] = include.split(",")
        if exclude := os.getenv("CHUNKLOOM_INDEXING__EXCLUDE"):
            config["exclude"] = exclude.split(",")

        if use_gitignore := os.getenv("CHUNKLOOM_INDEXING__USE_GITIGNORE"):
            config["use_gitignore"] = use_gitignore.lower() in ("true", "1", "yes")
        if max_size := os.getenv("CHUNKLOOM_INDEXING__MAX_FILE_SIZE_MB"):
            try:
                config["max_file_size_mb"] = int(max_size)
            except ValueError:
                # Keep default on invalid values
                pass

        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract indexing config from CLI arguments."""
        overrides: dict[str, Any] = {}

        if getattr(args, "force", False):
            overrides["force_reindex"] = True
        if getattr(args, "include", None):
            overrides["include"] = args.include
        if getattr(args, "exclude", None):
            overrides["exclude"] = args.exclude
        if getattr(args, "no_gitignore", False):
            overrides["use_gitignore"] = False

        return overrides

    def __repr__(self) -> str:
        """String representation of indexing configuration."""
        return (
            f"IndexingConfig("
            f"force_reindex={self.force_reindex}, "
            f"patterns={len(self.include)} includes, {len(self.exclude)} excludes)"
        )
