"""DuckDB-backed vector store for chunkloom."""

import json
from typing import TYPE_CHECKING

from loguru import logger

from chunkloom.core.models import VectorRecord
from chunkloom.interfaces.stores import VectorStore

if TYPE_CHECKING:
    from chunkloom.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )


class DuckDBVectorStore(VectorStore):
    """Stores chunk embeddings with their JSON payloads."""

    def __init__(self, connection_manager: "DuckDBConnectionManager"):
        self.connection_manager = connection_manager

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        await self.connection_manager.run(self._upsert, records)

    def _upsert(self, records: list[VectorRecord]) -> None:
        connection = self.connection_manager.connection
        if connection is None:
            raise RuntimeError("No database connection")

        rows = [
            [
                record.id,
                record.payload.get("source_id"),
                record.payload.get("file_path"),
                record.vector,
                json.dumps(record.payload),
            ]
            for record in records
        ]
        ids = [record.id for record in records]

        connection.execute("BEGIN TRANSACTION")
        try:
            connection.execute("DELETE FROM vectors WHERE list_contains(?, id)", [ids])
            connection.executemany(
                """
                INSERT INTO vectors (id, source_id, file_path, embedding, payload)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
            connection.execute("COMMIT")
        except Exception as e:
            connection.execute("ROLLBACK")
            logger.error(f"Failed to upsert {len(records)} vectors: {e}")
            raise

    async def delete_by_source_id(self, source_id: str) -> None:
        await self.connection_manager.run(
            self.connection_manager.execute,
            "DELETE FROM vectors WHERE source_id = ?",
            [source_id],
        )

    async def delete_by_file_paths(self, source_id: str, file_paths: list[str]) -> None:
        if not file_paths:
            return
        await self.connection_manager.run(
            self.connection_manager.execute,
            "DELETE FROM vectors WHERE source_id = ? AND list_contains(?, file_path)",
            [source_id, list(file_paths)],
        )

    async def count(self, source_id: str | None = None) -> int:
        return await self.connection_manager.run(self._count, source_id)

    def _count(self, source_id: str | None) -> int:
        if source_id is None:
            row = self.connection_manager.execute("SELECT COUNT(*) FROM vectors").fetchone()
        else:
            row = self.connection_manager.execute(
                "SELECT COUNT(*) FROM vectors WHERE source_id = ?", [source_id]
            ).fetchone()
        return row[0] if row else 0

    async def get_payloads(self, source_id: str) -> list[dict]:
        """Return the payloads stored for a source, ordered by file and line."""
        return await self.connection_manager.run(self._get_payloads, source_id)

    def _get_payloads(self, source_id: str) -> list[dict]:
        rows = self.connection_manager.execute(
            "SELECT payload FROM vectors WHERE source_id = ?", [source_id]
        ).fetchall()
        payloads = [json.loads(row[0]) for row in rows]
        payloads.sort(key=lambda p: (p.get("file_path") or "", p.get("start_line") or 0))
        return payloads
