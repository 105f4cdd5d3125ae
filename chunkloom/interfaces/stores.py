"""Persistence interfaces driving the indexing pipeline and task processor."""

from abc import ABC, abstractmethod
from typing import Any

from chunkloom.core.models import (
    FileMetadata,
    Job,
    JobLog,
    Source,
    VectorRecord,
)
from chunkloom.core.types.common import JobStatus, JobType, SourceKind, SourceStatus


class VectorStore(ABC):
    """Stores chunk embeddings with their payloads."""

    @abstractmethod
    async def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace vectors by id."""
        ...

    @abstractmethod
    async def delete_by_source_id(self, source_id: str) -> None:
        """Delete every vector of a source."""
        ...

    @abstractmethod
    async def delete_by_file_paths(self, source_id: str, file_paths: list[str]) -> None:
        """Delete the vectors of the given files of a source."""
        ...


class MetadataStore(ABC):
    """Per-file fingerprints used for change detection."""

    @abstractmethod
    async def upsert(self, metadata: FileMetadata) -> None:
        """Insert or replace the record for ``(source_id, file_path)``."""
        ...

    @abstractmethod
    async def find(self, source_id: str, file_path: str) -> FileMetadata | None: ...

    @abstractmethod
    async def find_by_source(self, source_id: str) -> list[FileMetadata]: ...

    @abstractmethod
    async def delete_by_paths(self, source_id: str, file_paths: list[str]) -> int:
        """Delete records for the given paths. Returns the number deleted."""
        ...

    @abstractmethod
    async def delete_by_source(self, source_id: str) -> int: ...

    async def get_fingerprint_map(self, source_id: str) -> dict[str, str]:
        """Return ``{file_path: content_hash}`` for a source."""
        records = await self.find_by_source(source_id)
        return {record.file_path: record.content_hash for record in records}


class JobStore(ABC):
    """Durable job queue with progress, logs and cancellation flags."""

    @abstractmethod
    async def create_job(
        self,
        source_id: str,
        source_kind: SourceKind,
        job_type: JobType,
        triggered_by: str = "CLI",
    ) -> Job: ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None: ...

    @abstractmethod
    async def claim_pending(
        self, limit: int, exclude_ids: list[str] | None = None
    ) -> list[Job]:
        """
        Atomically move up to ``limit`` PENDING jobs to RUNNING, oldest first.

        A job is returned only if this call performed its transition, so two
        concurrent callers never claim the same job.
        """
        ...

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        error_message: str | None = None,
        files_processed: int | None = None,
        chunks_created: int | None = None,
        summaries_generated: int | None = None,
    ) -> None:
        """Set a job's status. Terminal statuses also stamp ``completed_at``."""
        ...

    @abstractmethod
    async def update_progress(
        self, job_id: str, phase: str, current: int, total: int
    ) -> None: ...

    @abstractmethod
    async def add_log(
        self,
        job_id: str,
        level: str,
        message: str,
        phase: str | None = None,
        file_path: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def add_logs(self, job_id: str, logs: list[JobLog]) -> None: ...

    @abstractmethod
    async def get_logs(self, job_id: str, limit: int | None = None) -> list[JobLog]: ...

    @abstractmethod
    async def request_cancel(self, job_id: str) -> bool:
        """Cancel a PENDING or RUNNING job. Returns False if already terminal."""
        ...

    @abstractmethod
    async def is_cancelled(self, job_id: str) -> bool: ...

    @abstractmethod
    async def cancel_all_running(self) -> int:
        """Mark every RUNNING job CANCELLED. Returns the number updated."""
        ...


class SourceStore(ABC):
    """Local and remote sources with their per-job-type statuses."""

    @abstractmethod
    async def create_local(self, path: str, name: str | None = None) -> Source: ...

    @abstractmethod
    async def create_remote(
        self,
        repo_url: str,
        full_name: str,
        name: str | None = None,
        default_branch: str | None = None,
    ) -> Source: ...

    @abstractmethod
    async def get(self, source_id: str) -> Source | None: ...

    @abstractmethod
    async def find_by_path(self, path: str) -> Source | None: ...

    @abstractmethod
    async def update_status(
        self,
        source_id: str,
        field: str,
        status: SourceStatus,
        error: str | None = None,
    ) -> None:
        """
        Set one of ``indexing_status``, ``snippet_status`` or ``wiki_status``.

        For ``indexing_status`` the ``index_error`` column is set to ``error``.
        """
        ...

    @abstractmethod
    async def update_index_stats(
        self,
        source_id: str,
        file_count: int,
        chunk_count: int,
        summary_count: int,
    ) -> None:
        """Record index statistics and stamp ``last_indexed_at``."""
        ...

    @abstractmethod
    async def update_clone_info(
        self, source_id: str, local_path: str, commit_sha: str | None = None
    ) -> None: ...

    @abstractmethod
    async def update_commit(self, source_id: str, commit_sha: str) -> None: ...

    @abstractmethod
    async def reset_in_flight_statuses(self) -> int:
        """Move every INDEXING status back to PENDING. Returns sources touched."""
        ...
