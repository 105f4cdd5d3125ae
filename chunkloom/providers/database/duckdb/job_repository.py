"""DuckDB job repository for chunkloom - job queue, progress, logs and cancellation."""

import json
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from chunkloom.core.models import Job, JobLog
from chunkloom.core.types.common import JobStatus, JobType, SourceKind
from chunkloom.interfaces.stores import JobStore

if TYPE_CHECKING:
    from chunkloom.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )

_JOB_COLUMNS = (
    "id, source_id, source_kind, job_type, status, triggered_by, files_processed, "
    "chunks_created, summaries_generated, progress_phase, progress_current, "
    "progress_total, error_message, created_at, started_at, completed_at"
)


def _row_to_job(row: tuple) -> Job:
    return Job(
        id=row[0],
        source_id=row[1],
        source_kind=SourceKind(row[2]),
        job_type=JobType(row[3]),
        status=JobStatus(row[4]),
        triggered_by=row[5],
        files_processed=row[6] or 0,
        chunks_created=row[7] or 0,
        summaries_generated=row[8] or 0,
        progress_phase=row[9],
        progress_current=row[10] or 0,
        progress_total=row[11] or 0,
        error_message=row[12],
        created_at=row[13],
        started_at=row[14],
        completed_at=row[15],
    )


class DuckDBJobRepository(JobStore):
    """Repository for jobs and job logs using DuckDB."""

    def __init__(self, connection_manager: "DuckDBConnectionManager"):
        self.connection_manager = connection_manager

    async def create_job(
        self,
        source_id: str,
        source_kind: SourceKind,
        job_type: JobType,
        triggered_by: str = "CLI",
    ) -> Job:
        job = Job(
            id=str(uuid.uuid4()),
            source_id=source_id,
            source_kind=source_kind,
            job_type=job_type,
            triggered_by=triggered_by,
            created_at=datetime.now(),
        )
        await self.connection_manager.run(self._insert_job, job)
        logger.debug(f"Created {job_type.value} job {job.id} for source {source_id}")
        return job

    def _insert_job(self, job: Job) -> None:
        self.connection_manager.execute(
            """
            INSERT INTO jobs (id, source_id, source_kind, job_type, status, triggered_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                job.id,
                job.source_id,
                job.source_kind.value,
                job.job_type.value,
                job.status.value,
                job.triggered_by,
                job.created_at,
            ],
        )

    async def get_job(self, job_id: str) -> Job | None:
        return await self.connection_manager.run(self._get_job, job_id)

    def _get_job(self, job_id: str) -> Job | None:
        row = self.connection_manager.execute(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", [job_id]
        ).fetchone()
        return _row_to_job(row) if row else None

    async def find_by_source(self, source_id: str, limit: int = 50) -> list[Job]:
        """Jobs for a source, newest first."""
        return await self.connection_manager.run(self._find_by_source, source_id, limit)

    def _find_by_source(self, source_id: str, limit: int) -> list[Job]:
        rows = self.connection_manager.execute(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE source_id = ? "
            "ORDER BY created_at DESC LIMIT ?",
            [source_id, limit],
        ).fetchall()
        return [_row_to_job(row) for row in rows]

    async def claim_pending(
        self, limit: int, exclude_ids: list[str] | None = None
    ) -> list[Job]:
        if limit <= 0:
            return []
        return await self.connection_manager.run(
            self._claim_pending, limit, list(exclude_ids or [])
        )

    def _claim_pending(self, limit: int, exclude_ids: list[str]) -> list[Job]:
        candidates = self.connection_manager.execute(
            "SELECT id FROM jobs WHERE status = 'PENDING' ORDER BY seq"
        ).fetchall()

        claimed: list[Job] = []
        now = datetime.now()
        for (job_id,) in candidates:
            if len(claimed) >= limit:
                break
            if job_id in exclude_ids:
                continue
            # The status guard makes the transition conditional
            row = self.connection_manager.execute(
                f"""
                UPDATE jobs SET status = 'RUNNING', started_at = ?
                WHERE id = ? AND status = 'PENDING'
                RETURNING {_JOB_COLUMNS}
                """,
                [now, job_id],
            ).fetchone()
            if row:
                claimed.append(_row_to_job(row))
        return claimed

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        error_message: str | None = None,
        files_processed: int | None = None,
        chunks_created: int | None = None,
        summaries_generated: int | None = None,
    ) -> None:
        assignments = ["status = ?"]
        params: list[Any] = [status.value]

        optional = {
            "error_message": error_message,
            "files_processed": files_processed,
            "chunks_created": chunks_created,
            "summaries_generated": summaries_generated,
        }
        for column, value in optional.items():
            if value is not None:
                assignments.append(f"{column} = ?")
                params.append(value)

        if status == JobStatus.RUNNING:
            assignments.append("started_at = COALESCE(started_at, ?)")
            params.append(datetime.now())
        if status.is_terminal:
            assignments.append("completed_at = ?")
            params.append(datetime.now())

        params.append(job_id)
        await self.connection_manager.run(
            self.connection_manager.execute,
            f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ?",
            params,
        )

    async def update_progress(
        self, job_id: str, phase: str, current: int, total: int
    ) -> None:
        await self.connection_manager.run(
            self.connection_manager.execute,
            """
            UPDATE jobs SET progress_phase = ?, progress_current = ?, progress_total = ?
            WHERE id = ?
            """,
            [phase, current, total, job_id],
        )

    async def add_log(
        self,
        job_id: str,
        level: str,
        message: str,
        phase: str | None = None,
        file_path: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.add_logs(
            job_id,
            [
                JobLog(
                    job_id=job_id,
                    level=level,
                    message=message,
                    phase=phase,
                    file_path=file_path,
                    metadata=metadata,
                    created_at=datetime.now(),
                )
            ],
        )

    async def add_logs(self, job_id: str, logs: list[JobLog]) -> None:
        if not logs:
            return
        await self.connection_manager.run(self._insert_logs, job_id, logs)

    def _insert_logs(self, job_id: str, logs: list[JobLog]) -> None:
        rows = [
            [
                job_id,
                log.level,
                log.message,
                log.phase,
                log.file_path,
                json.dumps(log.metadata) if log.metadata is not None else None,
                log.created_at or datetime.now(),
            ]
            for log in logs
        ]
        self.connection_manager.connection.executemany(
            """
            INSERT INTO job_logs (job_id, level, message, phase, file_path, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

    async def get_logs(self, job_id: str, limit: int | None = None) -> list[JobLog]:
        return await self.connection_manager.run(self._get_logs, job_id, limit)

    def _get_logs(self, job_id: str, limit: int | None) -> list[JobLog]:
        query = """
            SELECT job_id, level, message, phase, file_path, metadata, created_at
            FROM job_logs WHERE job_id = ? ORDER BY id
        """
        params: list[Any] = [job_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self.connection_manager.execute(query, params).fetchall()
        return [
            JobLog(
                job_id=row[0],
                level=row[1],
                message=row[2],
                phase=row[3],
                file_path=row[4],
                metadata=json.loads(row[5]) if row[5] else None,
                created_at=row[6],
            )
            for row in rows
        ]

    async def request_cancel(self, job_id: str) -> bool:
        return await self.connection_manager.run(self._request_cancel, job_id)

    def _request_cancel(self, job_id: str) -> bool:
        now = datetime.now()
        # A pending job never starts; a running one sees the flag at its next poll
        row = self.connection_manager.execute(
            """
            UPDATE jobs SET status = 'CANCELLED', cancel_requested = TRUE, completed_at = ?
            WHERE id = ? AND status = 'PENDING'
            RETURNING id
            """,
            [now, job_id],
        ).fetchone()
        if row:
            return True

        row = self.connection_manager.execute(
            """
            UPDATE jobs SET cancel_requested = TRUE
            WHERE id = ? AND status = 'RUNNING'
            RETURNING id
            """,
            [job_id],
        ).fetchone()
        return row is not None

    async def is_cancelled(self, job_id: str) -> bool:
        return await self.connection_manager.run(self._is_cancelled, job_id)

    def _is_cancelled(self, job_id: str) -> bool:
        row = self.connection_manager.execute(
            "SELECT status, cancel_requested FROM jobs WHERE id = ?", [job_id]
        ).fetchone()
        if row is None:
            return False
        return row[0] == JobStatus.CANCELLED.value or bool(row[1])

    async def cancel_all_running(self) -> int:
        return await self.connection_manager.run(self._cancel_all_running)

    def _cancel_all_running(self) -> int:
        rows = self.connection_manager.execute(
            """
            UPDATE jobs SET status = 'CANCELLED', completed_at = ?
            WHERE status = 'RUNNING'
            RETURNING id
            """,
            [datetime.now()],
        ).fetchall()
        return len(rows)
