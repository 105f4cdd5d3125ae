"""Database configuration for chunkloom."""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Location of the DuckDB file holding jobs, sources and file metadata."""

    path: Path = Field(default=Path(".chunkloom") / "db.duckdb")

    @property
    def is_memory(self) -> bool:
        return str(self.path) == ":memory:"

    def get_db_path(self) -> Path | str:
        if self.is_memory:
            return ":memory:"
        return self.path

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        config: dict[str, Any] = {}
        if db_path := os.getenv("CHUNKLOOM_DATABASE__PATH"):
            config["path"] = db_path
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if getattr(args, "db", None):
            overrides["path"] = args.db
        return overrides
