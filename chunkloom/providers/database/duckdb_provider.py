"""DuckDB provider for chunkloom - delegates to the connection manager and repositories."""

from pathlib import Path
from typing import Any

from loguru import logger

from chunkloom.core.config.database_config import DatabaseConfig
from chunkloom.providers.database.duckdb import (
    DuckDBConnectionManager,
    DuckDBFileMetadataRepository,
    DuckDBJobRepository,
    DuckDBSourceRepository,
    DuckDBVectorStore,
)


class DuckDBProvider:
    """Single entry point for the DuckDB-backed stores.

    Usable as an async context manager::

        async with DuckDBProvider(":memory:") as db:
            source = await db.sources.create_local("/repo")
    """

    def __init__(self, db_path: Path | str):
        self._connection_manager = DuckDBConnectionManager(db_path)
        self.jobs = DuckDBJobRepository(self._connection_manager)
        self.sources = DuckDBSourceRepository(self._connection_manager)
        self.file_metadata = DuckDBFileMetadataRepository(self._connection_manager)
        self.vectors = DuckDBVectorStore(self._connection_manager)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "DuckDBProvider":
        return cls(config.get_db_path())

    @property
    def db_path(self) -> Path | str:
        return self._connection_manager.db_path

    @property
    def is_connected(self) -> bool:
        return self._connection_manager.is_connected

    async def connect(self) -> None:
        await self._connection_manager.connect()
        logger.info("DuckDB provider initialization complete")

    async def disconnect(self) -> None:
        await self._connection_manager.disconnect()

    async def __aenter__(self) -> "DuckDBProvider":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()
