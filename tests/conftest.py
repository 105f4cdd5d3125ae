"""
Pytest configuration and fixtures for chunkloom tests.
"""

import os
import shutil
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from chunkloom.core.models import (
    CodeSummary,
    FileMetadata,
    Job,
    JobLog,
    Source,
    VectorRecord,
)
from chunkloom.core.types.common import (
    JobStatus,
    JobType,
    Language,
    SourceKind,
    SourceStatus,
)
from chunkloom.interfaces.stores import JobStore, MetadataStore, SourceStore, VectorStore
from chunkloom.interfaces.summarizer import Summarizer


class InMemoryMetadataStore(MetadataStore):
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], FileMetadata] = {}
        self.fail_upsert = False

    async def upsert(self, metadata: FileMetadata) -> None:
        if self.fail_upsert:
            raise RuntimeError("metadata store unavailable")
        self.records[(metadata.source_id, metadata.file_path)] = metadata

    async def find(self, source_id: str, file_path: str) -> FileMetadata | None:
        return self.records.get((source_id, file_path))

    async def find_by_source(self, source_id: str) -> list[FileMetadata]:
        return [r for (sid, _), r in sorted(self.records.items()) if sid == source_id]

    async def delete_by_paths(self, source_id: str, file_paths: list[str]) -> int:
        deleted = 0
        for path in file_paths:
            if self.records.pop((source_id, path), None) is not None:
                deleted += 1
        return deleted

    async def delete_by_source(self, source_id: str) -> int:
        keys = [key for key in self.records if key[0] == source_id]
        for key in keys:
            del self.records[key]
        return len(keys)

    def paths(self, source_id: str) -> list[str]:
        return sorted(path for sid, path in self.records if sid == source_id)


class InMemoryVectorStore(VectorStore):
    def __init__(self) -> None:
        self.records: dict[str, VectorRecord] = {}
        self.fail_upsert = False

    async def upsert(self, records: list[VectorRecord]) -> None:
        if self.fail_upsert:
            raise RuntimeError("vector store unavailable")
        for record in records:
            self.records[record.id] = record

    async def delete_by_source_id(self, source_id: str) -> None:
        self.records = {
            k: r for k, r in self.records.items() if r.payload["source_id"] != source_id
        }

    async def delete_by_file_paths(self, source_id: str, file_paths: list[str]) -> None:
        paths = set(file_paths)
        self.records = {
            k: r
            for k, r in self.records.items()
            if not (r.payload["source_id"] == source_id and r.payload["file_path"] in paths)
        }

    def file_paths(self) -> set[str]:
        return {r.payload["file_path"] for r in self.records.values()}


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self.jobs: dict[str, Job] = {}
        self.logs: dict[str, list[JobLog]] = {}
        self.cancel_flags: set[str] = set()
        self.progress: dict[str, tuple[str, int, int]] = {}

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
        self.jobs[job.id] = job
        return job

    async def get_job(self, job_id: str) -> Job | None:
        return self.jobs.get(job_id)

    async def claim_pending(
        self, limit: int, exclude_ids: list[str] | None = None
    ) -> list[Job]:
        excluded = set(exclude_ids or [])
        claimed = []
        for job in self.jobs.values():
            if len(claimed) >= limit:
                break
            if job.status == JobStatus.PENDING and job.id not in excluded:
                job.status = JobStatus.RUNNING
                job.started_at = datetime.now()
                claimed.append(job)
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
        job = self.jobs[job_id]
        job.status = status
        if error_message is not None:
            job.error_message = error_message
        if files_processed is not None:
            job.files_processed = files_processed
        if chunks_created is not None:
            job.chunks_created = chunks_created
        if summaries_generated is not None:
            job.summaries_generated = summaries_generated
        if status == JobStatus.RUNNING and job.started_at is None:
            job.started_at = datetime.now()
        if status.is_terminal:
            job.completed_at = datetime.now()

    async def update_progress(
        self, job_id: str, phase: str, current: int, total: int
    ) -> None:
        self.progress[job_id] = (phase, current, total)

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
            [JobLog(job_id, level, message, phase, file_path, metadata, datetime.now())],
        )

    async def add_logs(self, job_id: str, logs: list[JobLog]) -> None:
        self.logs.setdefault(job_id, []).extend(logs)

    async def get_logs(self, job_id: str, limit: int | None = None) -> list[JobLog]:
        logs = self.logs.get(job_id, [])
        return logs[:limit] if limit is not None else list(logs)

    async def request_cancel(self, job_id: str) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status.is_terminal:
            return False
        if job.status == JobStatus.PENDING:
            job.status = JobStatus.CANCELLED
        self.cancel_flags.add(job_id)
        return True

    async def is_cancelled(self, job_id: str) -> bool:
        job = self.jobs.get(job_id)
        return job_id in self.cancel_flags or (
            job is not None and job.status == JobStatus.CANCELLED
        )

    async def cancel_all_running(self) -> int:
        count = 0
        for job in self.jobs.values():
            if job.status == JobStatus.RUNNING:
                job.status = JobStatus.CANCELLED
                count += 1
        return count

    def messages(self, job_id: str) -> list[str]:
        return [log.message for log in self.logs.get(job_id, [])]


class InMemorySourceStore(SourceStore):
    def __init__(self) -> None:
        self.sources: dict[str, Source] = {}

    async def create_local(self, path: str, name: str | None = None) -> Source:
        source = Source(
            id=str(uuid.uuid4()), name=name or Path(path).name, path=str(path)
        )
        self.sources[source.id] = source
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
            name=name or full_name,
            kind=SourceKind.REMOTE,
            repo_url=repo_url,
            full_name=full_name,
            default_branch=default_branch,
        )
        self.sources[source.id] = source
        return source

    async def get(self, source_id: str) -> Source | None:
        return self.sources.get(source_id)

    async def find_by_path(self, path: str) -> Source | None:
        for source in self.sources.values():
            if source.path == path:
                return source
        return None

    async def update_status(
        self,
        source_id: str,
        field: str,
        status: SourceStatus,
        error: str | None = None,
    ) -> None:
        source = self.sources[source_id]
        setattr(source, field, status)
        if field == "indexing_status":
            source.index_error = error

    async def update_index_stats(
        self,
        source_id: str,
        file_count: int,
        chunk_count: int,
        summary_count: int,
    ) -> None:
        source = self.sources[source_id]
        source.file_count = file_count
        source.chunk_count = chunk_count
        source.summary_count = summary_count
        source.last_indexed_at = datetime.now()

    async def update_clone_info(
        self, source_id: str, local_path: str, commit_sha: str | None = None
    ) -> None:
        source = self.sources[source_id]
        source.local_path = local_path
        source.last_commit_sha = commit_sha

    async def update_commit(self, source_id: str, commit_sha: str) -> None:
        self.sources[source_id].last_commit_sha = commit_sha

    async def reset_in_flight_statuses(self) -> int:
        touched = 0
        for source in self.sources.values():
            changed = False
            for field in ("indexing_status", "snippet_status", "wiki_status"):
                if getattr(source, field) == SourceStatus.INDEXING:
                    setattr(source, field, SourceStatus.PENDING)
                    changed = True
            touched += changed
        return touched


class FakeSummarizer(Summarizer):
    """Summarizes every chunk as "summary of <symbol>"."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.calls: list[str | None] = []
        self.fail_for = fail_for or set()

    @property
    def name(self) -> str:
        return "fake"

    async def summarize(
        self,
        content: str,
        language: Language,
        symbol_name: str | None = None,
    ) -> CodeSummary:
        self.calls.append(symbol_name)
        if symbol_name in self.fail_for:
            raise ValueError(f"cannot summarize {symbol_name}")
        return CodeSummary(summary=f"summary of {symbol_name}", keywords=["fake"])


class FakeEmbeddingProvider:
    """Returns deterministic 3-dimensional vectors."""

    def __init__(self, fail: bool = False, drop_last: bool = False) -> None:
        self.fail = fail
        self.drop_last = drop_last
        self.batches: list[list[str]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-embedding"

    @property
    def dims(self) -> int:
        return 3

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self.fail:
            raise ValueError("embedding model rejected the input")
        vectors = [[float(len(text)), 1.0, 0.0] for text in texts]
        return vectors[:-1] if self.drop_last else vectors


SAMPLE_TS = '''import { Request } from "express";

/** Adds two numbers. */
export function add(a: number, b: number): number {
  return a + b;
}

export interface User {
  id: string;
  name: string;
}

export class UserService {
  private users: User[] = [];

  find(id: string): User | undefined {
    return this.users.find((u) => u.id === id);
  }
}
'''

SAMPLE_PY = '''import os
from pathlib import Path


def read_config(path):
    """Read a configuration file."""
    return Path(path).read_text()


class Loader:
    """Loads things."""

    def load(self, name):
        return os.path.join("data", name)

    def _cache_key(self, name):
        return name.lower()
'''

SAMPLE_UTILS_TS = '''export const double = (n: number): number => n * 2;

export type Mode = "fast" | "slow";
'''


@pytest.fixture
def temp_project_dir():
    """Create a temporary project directory for testing."""
    temp_dir = Path(tempfile.mkdtemp())
    project_dir = temp_dir / "project"
    project_dir.mkdir()

    yield project_dir

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def sample_project(temp_project_dir):
    """A project with two TypeScript files and one Python file."""
    (temp_project_dir / "src").mkdir()
    (temp_project_dir / "src" / "service.ts").write_text(SAMPLE_TS)
    (temp_project_dir / "src" / "utils.ts").write_text(SAMPLE_UTILS_TS)
    (temp_project_dir / "loader.py").write_text(SAMPLE_PY)
    return temp_project_dir


@pytest.fixture
def temp_db_path(temp_project_dir):
    """Create a temporary database path."""
    return temp_project_dir / ".chunkloom" / "test.duckdb"


@pytest.fixture
def clean_environment():
    """Clean up chunkloom environment variables before and after tests."""
    prefixes = ("CHUNKLOOM_", "POLL_INTERVAL_MS", "WORKER_CONCURRENCY")
    original_env = {}
    for key in list(os.environ.keys()):
        if key.startswith(prefixes):
            original_env[key] = os.environ[key]
            del os.environ[key]

    yield

    for key in list(os.environ.keys()):
        if key.startswith(prefixes):
            del os.environ[key]

    for key, value in original_env.items():
        os.environ[key] = value


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def source_store():
    return InMemorySourceStore()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()
