"""Database providers for chunkloom."""

from .duckdb_provider import DuckDBProvider

__all__ = ["DuckDBProvider"]
