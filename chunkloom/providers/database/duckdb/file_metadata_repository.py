"""DuckDB file metadata repository for chunkloom."""

from typing import TYPE_CHECKING

from chunkloom.core.models import FileMetadata
from chunkloom.core.types.common import Language
from chunkloom.interfaces.stores import MetadataStore

if TYPE_CHECKING:
    from chunkloom.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )

_COLUMNS = (
    "source_id, file_path, absolute_path, content_hash, size, language, "
    "last_modified, last_indexed, chunk_count, has_summary"
)


def _row_to_metadata(row: tuple) -> FileMetadata:
    return FileMetadata(
        source_id=row[0],
        file_path=row[1],
        absolute_path=row[2],
        content_hash=row[3],
        size=row[4],
        language=Language(row[5]),
        last_modified=row[6],
        last_indexed=row[7],
        chunk_count=row[8] or 0,
        has_summary=bool(row[9]),
    )


class DuckDBFileMetadataRepository(MetadataStore):
    """Per-file fingerprints keyed by ``(source_id, file_path)``."""

    def __init__(self, connection_manager: "DuckDBConnectionManager"):
        self.connection_manager = connection_manager

    async def upsert(self, metadata: FileMetadata) -> None:
        await self.connection_manager.run(self._upsert, metadata)

    def _upsert(self, metadata: FileMetadata) -> None:
        self.connection_manager.execute(
            f"""
            INSERT OR REPLACE INTO file_metadata ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                metadata.source_id,
                metadata.file_path,
                metadata.absolute_path,
                metadata.content_hash,
                metadata.size,
                metadata.language.value,
                metadata.last_modified,
                metadata.last_indexed,
                metadata.chunk_count,
                metadata.has_summary,
            ],
        )

    async def find(self, source_id: str, file_path: str) -> FileMetadata | None:
        return await self.connection_manager.run(self._find, source_id, file_path)

    def _find(self, source_id: str, file_path: str) -> FileMetadata | None:
        row = self.connection_manager.execute(
            f"SELECT {_COLUMNS} FROM file_metadata WHERE source_id = ? AND file_path = ?",
            [source_id, file_path],
        ).fetchone()
        return _row_to_metadata(row) if row else None

    async def find_by_source(self, source_id: str) -> list[FileMetadata]:
        return await self.connection_manager.run(self._find_by_source, source_id)

    def _find_by_source(self, source_id: str) -> list[FileMetadata]:
        rows = self.connection_manager.execute(
            f"SELECT {_COLUMNS} FROM file_metadata WHERE source_id = ? ORDER BY file_path",
            [source_id],
        ).fetchall()
        return [_row_to_metadata(row) for row in rows]

    async def delete_by_paths(self, source_id: str, file_paths: list[str]) -> int:
        if not file_paths:
            return 0
        return await self.connection_manager.run(
            self._delete_by_paths, source_id, list(file_paths)
        )

    def _delete_by_paths(self, source_id: str, file_paths: list[str]) -> int:
        rows = self.connection_manager.execute(
            """
            DELETE FROM file_metadata
            WHERE source_id = ? AND list_contains(?, file_path)
            RETURNING file_path
            """,
            [source_id, file_paths],
        ).fetchall()
        return len(rows)

    async def delete_by_source(self, source_id: str) -> int:
        return await self.connection_manager.run(self._delete_by_source, source_id)

    def _delete_by_source(self, source_id: str) -> int:
        rows = self.connection_manager.execute(
            "DELETE FROM file_metadata WHERE source_id = ? RETURNING file_path",
            [source_id],
        ).fetchall()
        return len(rows)
