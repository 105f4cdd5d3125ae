"""DuckDB source repository for chunkloom."""

import uuid
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from chunkloom.core.models import Source
from chunkloom.core.types.common import SourceKind, SourceStatus
from chunkloom.interfaces.stores import SourceStore

if TYPE_CHECKING:
    from chunkloom.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )

STATUS_FIELDS = ("indexing_status", "snippet_status", "wiki_status")

_COLUMNS = (
    "id, name, kind, path, repo_url, full_name, default_branch, local_path, "
    "last_commit_sha, indexing_status, snippet_status, wiki_status, index_error, "
    "file_count, chunk_count, summary_count, last_indexed_at"
)


def _row_to_source(row: tuple) -> Source:
    return Source(
        id=row[0],
        name=row[1],
        kind=SourceKind(row[2]),
        path=row[3],
        repo_url=row[4],
        full_name=row[5],
        default_branch=row[6],
        local_path=row[7],
        last_commit_sha=row[8],
        indexing_status=SourceStatus(row[9]),
        snippet_status=SourceStatus(row[10]),
        wiki_status=SourceStatus(row[11]),
        index_error=row[12],
        file_count=row[13] or 0,
        chunk_count=row[14] or 0,
        summary_count=row[15] or 0,
        last_indexed_at=row[16],
    )


class DuckDBSourceRepository(SourceStore):
    """Repository for local and remote sources using DuckDB."""

    def __init__(self, connection_manager: "DuckDBConnectionManager"):
        self.connection_manager = connection_manager

    async def create_local(self, path: str, name: str | None = None) -> Source:
        resolved = str(Path(path).resolve())
        source = Source(
            id=str(uuid.uuid4()),
            name=name or Path(resolved).name,
            kind=SourceKind.LOCAL,
            path=resolved,
        )
        await self.connection_manager.run(self._insert, source)
        logger.debug(f"Registered local source {source.id} at {resolved}")
        return source

    async def create_remote(
        self,
        repo_url: str,
        full_name: str,
        name: str | None = None,
        default_branch: str | None = None,
    ) -> Source:
        source = Source(
            id=str(uuid.uuid4()),
            name=name or full_name.split("/")[-1],
            kind=SourceKind.REMOTE,
            repo_url=repo_url,
            full_name=full_name,
            default_branch=default_branch,
        )
        await self.connection_manager.run(self._insert, source)
        logger.debug(f"Registered remote source {source.id} for {full_name}")
        return source

    def _insert(self, source: Source) -> None:
        self.connection_manager.execute(
            """
            INSERT INTO sources (id, name, kind, path, repo_url, full_name, default_branch)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                source.id,
                source.name,
                source.kind.value,
                source.path,
                source.repo_url,
                source.full_name,
                source.default_branch,
            ],
        )

    async def get(self, source_id: str) -> Source | None:
        return await self.connection_manager.run(
            self._select_one, "id = ?", [source_id]
        )

    async def find_by_path(self, path: str) -> Source | None:
        return await self.connection_manager.run(
            self._select_one, "path = ?", [str(Path(path).resolve())]
        )

    def _select_one(self, where: str, params: list[Any]) -> Source | None:
        row = self.connection_manager.execute(
            f"SELECT {_COLUMNS} FROM sources WHERE {where}", params
        ).fetchone()
        return _row_to_source(row) if row else None

    async def update_status(
        self,
        source_id: str,
        field: str,
        status: SourceStatus,
        error: str | None = None,
    ) -> None:
        if field not in STATUS_FIELDS:
            raise ValueError(f"Unknown source status field: {field}")

        if field == "indexing_status":
            query = "UPDATE sources SET indexing_status = ?, index_error = ? WHERE id = ?"
            params: list[Any] = [status.value, error, source_id]
        else:
            query = f"UPDATE sources SET {field} = ? WHERE id = ?"
            params = [status.value, source_id]

        await self.connection_manager.run(self.connection_manager.execute, query, params)

    async def update_index_stats(
        self,
        source_id: str,
        file_count: int,
        chunk_count: int,
        summary_count: int,
    ) -> None:
        await self.connection_manager.run(
            self.connection_manager.execute,
            """
            UPDATE sources
            SET file_count = ?, chunk_count = ?, summary_count = ?, last_indexed_at = ?
            WHERE id = ?
            """,
            [file_count, chunk_count, summary_count, datetime.now(), source_id],
        )

    async def update_clone_info(
        self, source_id: str, local_path: str, commit_sha: str | None = None
    ) -> None:
        await self.connection_manager.run(
            self.connection_manager.execute,
            "UPDATE sources SET local_path = ?, last_commit_sha = ? WHERE id = ?",
            [local_path, commit_sha, source_id],
        )

    async def update_commit(self, source_id: str, commit_sha: str) -> None:
        await self.connection_manager.run(
            self.connection_manager.execute,
            "UPDATE sources SET last_commit_sha = ? WHERE id = ?",
            [commit_sha, source_id],
        )

    async def reset_in_flight_statuses(self) -> int:
        return await self.connection_manager.run(self._reset_in_flight_statuses)

    def _reset_in_flight_statuses(self) -> int:
        rows = self.connection_manager.execute(
            """
            UPDATE sources SET
                indexing_status = CASE WHEN indexing_status = 'INDEXING'
                    THEN 'PENDING' ELSE indexing_status END,
                snippet_status = CASE WHEN snippet_status = 'INDEXING'
                    THEN 'PENDING' ELSE snippet_status END,
                wiki_status = CASE WHEN wiki_status = 'INDEXING'
                    THEN 'PENDING' ELSE wiki_status END
            WHERE indexing_status = 'INDEXING'
               OR snippet_status = 'INDEXING'
               OR wiki_status = 'INDEXING'
            RETURNING id
            """
        ).fetchall()
        return len(rows)
