"""Tests for the worker task processor."""

import asyncio

import pytest

from chunkloom.core.config.worker_config import WorkerConfig
from chunkloom.core.exceptions import TaskCancelledError
from chunkloom.core.models import (
    CloneResult,
    GenerationError,
    GenerationResult,
    IndexingResult,
    PipelineError,
    PullResult,
)
from chunkloom.core.types.common import (
    ErrorPhase,
    JobStatus,
    JobType,
    SourceKind,
    SourceStatus,
)
from chunkloom.services import IndexingPipeline
from chunkloom.worker import TaskProcessor

FAST = WorkerConfig(
    poll_interval=0.01, cancellation_poll_interval=0.01, log_flush_interval=0.01
)


def make_result(files_processed=0, errors=None):
    errors = errors or []
    return IndexingResult(
        files_processed=files_processed,
        files_added=files_processed,
        files_modified=0,
        files_removed=0,
        chunks_created=0,
        summaries_generated=0,
        duration_ms=1.0,
        success=not errors,
        errors=errors,
    )


class BlockingPipeline:
    """Waits for the abort signal or ``release`` before returning."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls = 0

    async def index(self, source_id, root_path, options=None, on_progress=None):
        self.calls += 1
        abort = asyncio.ensure_future(options.abort_signal.wait())
        done = asyncio.ensure_future(self.release.wait())
        await asyncio.wait([abort, done], return_when=asyncio.FIRST_COMPLETED)
        abort.cancel()
        done.cancel()
        if options.abort_signal.is_set():
            raise TaskCancelledError()
        return make_result(files_processed=1)


class FailingPipeline:
    async def index(self, source_id, root_path, options=None, on_progress=None):
        return make_result(
            errors=[
                PipelineError(ErrorPhase.PARSE, "bad syntax", file="a.py"),
                PipelineError(ErrorPhase.EMBED, "embedding service down", recoverable=False),
            ]
        )


class FakeGenerator:
    def __init__(self, items: int = 4) -> None:
        self.items = items
        self.calls = []

    async def generate(self, source_id, source_path, abort_signal, on_progress=None):
        self.calls.append((source_id, source_path))
        return GenerationResult(
            item_count=self.items,
            duration_ms=12.0,
            errors=[GenerationError("skipped empty module", file="empty.py")],
        )


class FakeGitClient:
    def __init__(self, local_path: str) -> None:
        self.local_path = local_path
        self.clones = 0
        self.pulls = 0

    async def clone(self, source):
        self.clones += 1
        return CloneResult(local_path=self.local_path, commit_sha="abc123")

    async def pull(self, source):
        self.pulls += 1
        return PullResult(has_changes=True, commit_sha="def456", changed_files=["a.py"])


@pytest.fixture
def pipeline(metadata_store):
    return IndexingPipeline(metadata_store)


async def run_all(processor: TaskProcessor) -> int:
    started = await processor.poll_once()
    await processor.wait_for_active_jobs()
    return started


class TestRecovery:
    @pytest.mark.asyncio
    async def test_recover_stale_jobs(self, job_store, source_store, pipeline, sample_project):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        job.status = JobStatus.RUNNING
        source.indexing_status = SourceStatus.INDEXING
        source.wiki_status = SourceStatus.INDEXING

        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)
        assert await processor.recover_stale_jobs() == 1

        assert job_store.jobs[job.id].status == JobStatus.CANCELLED
        assert source.indexing_status == SourceStatus.PENDING
        assert source.wiki_status == SourceStatus.PENDING

    @pytest.mark.asyncio
    async def test_start_and_stop(self, job_store, source_store, pipeline, sample_project):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)

        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)
        await processor.start()
        assert processor.is_running

        for _ in range(200):
            if job_store.jobs[job.id].status == JobStatus.COMPLETED:
                break
            await asyncio.sleep(0.01)

        await processor.stop()
        assert not processor.is_running
        assert job_store.jobs[job.id].status == JobStatus.COMPLETED


class TestIndexingJobs:
    @pytest.mark.asyncio
    async def test_full_index_completes_and_queues_follow_on_jobs(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.FULL_INDEX)

        processor = TaskProcessor(
            job_store,
            source_store,
            pipeline,
            snippet_generator=FakeGenerator(),
            wiki_generator=FakeGenerator(),
            config=FAST,
        )
        assert await run_all(processor) == 1

        finished = job_store.jobs[job.id]
        assert finished.status == JobStatus.COMPLETED
        assert finished.files_processed == 3
        assert finished.completed_at is not None

        assert source.indexing_status == SourceStatus.READY
        assert source.file_count == 3
        assert source.last_indexed_at is not None

        follow_on = sorted(
            j.job_type.value for j in job_store.jobs.values() if j.id != job.id
        )
        assert follow_on == ["SNIPPET_GENERATE", "WIKI_GENERATE"]
        assert all(
            j.triggered_by == "WORKER" for j in job_store.jobs.values() if j.id != job.id
        )
        assert any("Starting indexing" in m for m in job_store.messages(job.id))

    @pytest.mark.asyncio
    async def test_full_index_skips_follow_on_without_generator(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.FULL_INDEX)

        processor = TaskProcessor(
            job_store, source_store, pipeline, wiki_generator=FakeGenerator(), config=FAST
        )
        await run_all(processor)

        assert job_store.jobs[job.id].status == JobStatus.COMPLETED
        follow_on = [j.job_type for j in job_store.jobs.values() if j.id != job.id]
        assert follow_on == [JobType.WIKI_GENERATE]
        assert source.wiki_status == SourceStatus.PENDING
        assert source.snippet_status != SourceStatus.ERROR

    @pytest.mark.asyncio
    async def test_incremental_index_queues_nothing(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)

        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)
        await run_all(processor)

        assert len(job_store.jobs) == 1

    @pytest.mark.asyncio
    async def test_missing_source_fails_job(self, job_store, source_store, pipeline):
        job = await job_store.create_job("nope", SourceKind.LOCAL, JobType.INCREMENTAL)
        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)

        await run_all(processor)

        finished = job_store.jobs[job.id]
        assert finished.status == JobStatus.FAILED
        assert "Source not found" in finished.error_message

    @pytest.mark.asyncio
    async def test_missing_directory_marks_source_error(
        self, job_store, source_store, pipeline, temp_project_dir
    ):
        source = await source_store.create_local(str(temp_project_dir / "gone"))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)

        await run_all(processor)

        assert job_store.jobs[job.id].status == JobStatus.FAILED
        assert source.indexing_status == SourceStatus.ERROR
        assert "does not exist" in source.index_error

    @pytest.mark.asyncio
    async def test_fatal_pipeline_errors_fail_job(
        self, job_store, source_store, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.FULL_INDEX)
        processor = TaskProcessor(job_store, source_store, FailingPipeline(), config=FAST)

        await run_all(processor)

        finished = job_store.jobs[job.id]
        assert finished.status == JobStatus.FAILED
        assert "embedding service down" in finished.error_message
        assert source.indexing_status == SourceStatus.ERROR
        # No follow-on work for a failed index
        assert len(job_store.jobs) == 1

        levels = {log.message: log.level for log in job_store.logs[job.id]}
        assert levels["bad syntax"] == "WARN"
        assert levels["embedding service down"] == "ERROR"

    @pytest.mark.asyncio
    async def test_cancel_running_job(self, job_store, source_store, sample_project):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        blocking = BlockingPipeline()
        processor = TaskProcessor(job_store, source_store, blocking, config=FAST)

        await processor.poll_once()
        for _ in range(100):
            if blocking.calls:
                break
            await asyncio.sleep(0.01)
        assert await job_store.request_cancel(job.id)
        await processor.wait_for_active_jobs()

        assert job_store.jobs[job.id].status == JobStatus.CANCELLED
        assert source.indexing_status == SourceStatus.PENDING
        assert "Task cancelled by user" in job_store.messages(job.id)

    @pytest.mark.asyncio
    async def test_cancel_after_claim_before_start(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        source.indexing_status = SourceStatus.INDEXING
        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)

        assert await processor.poll_once() == 1
        assert job_store.jobs[job.id].status == JobStatus.RUNNING
        assert await job_store.request_cancel(job.id)
        await processor.wait_for_active_jobs()

        finished = job_store.jobs[job.id]
        assert finished.status == JobStatus.CANCELLED
        assert finished.completed_at is not None
        assert source.indexing_status == SourceStatus.PENDING
        assert source.file_count == 0
        assert processor.active_job_ids == []

    @pytest.mark.asyncio
    async def test_concurrency_limits_claims(self, job_store, source_store, sample_project):
        source = await source_store.create_local(str(sample_project))
        first = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        second = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.INCREMENTAL)
        blocking = BlockingPipeline()
        processor = TaskProcessor(job_store, source_store, blocking, config=FAST)

        assert await processor.poll_once() == 1
        assert await processor.poll_once() == 0
        assert processor.active_job_ids == [first.id]
        assert job_store.jobs[second.id].status == JobStatus.PENDING

        blocking.release.set()
        await processor.wait_for_active_jobs()
        assert await run_all(processor) == 1
        assert job_store.jobs[second.id].status == JobStatus.COMPLETED


class TestRemoteSources:
    @pytest.mark.asyncio
    async def test_clones_remote_source_without_local_copy(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_remote("https://example.com/a/b.git", "a/b")
        job = await job_store.create_job(source.id, SourceKind.REMOTE, JobType.INCREMENTAL)
        git = FakeGitClient(str(sample_project))
        processor = TaskProcessor(job_store, source_store, pipeline, git_client=git, config=FAST)

        await run_all(processor)

        assert git.clones == 1
        assert source.local_path == str(sample_project)
        assert source.last_commit_sha == "abc123"
        assert job_store.jobs[job.id].status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_incremental_pulls_existing_clone(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_remote("https://example.com/a/b.git", "a/b")
        source.local_path = str(sample_project)
        await job_store.create_job(source.id, SourceKind.REMOTE, JobType.INCREMENTAL)
        git = FakeGitClient(str(sample_project))
        processor = TaskProcessor(job_store, source_store, pipeline, git_client=git, config=FAST)

        await run_all(processor)

        assert (git.clones, git.pulls) == (0, 1)
        assert source.last_commit_sha == "def456"

    @pytest.mark.asyncio
    async def test_remote_without_git_client_fails(
        self, job_store, source_store, pipeline
    ):
        source = await source_store.create_remote("https://example.com/a/b.git", "a/b")
        job = await job_store.create_job(source.id, SourceKind.REMOTE, JobType.FULL_INDEX)
        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)

        await run_all(processor)

        assert job_store.jobs[job.id].status == JobStatus.FAILED
        assert "git client" in job_store.jobs[job.id].error_message


class TestGenerationJobs:
    @pytest.mark.asyncio
    async def test_snippet_generation(self, job_store, source_store, pipeline, sample_project):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.SNIPPET_GENERATE)
        generator = FakeGenerator(items=4)
        processor = TaskProcessor(
            job_store, source_store, pipeline, snippet_generator=generator, config=FAST
        )

        await run_all(processor)

        finished = job_store.jobs[job.id]
        assert finished.status == JobStatus.COMPLETED
        assert finished.chunks_created == 4
        assert source.snippet_status == SourceStatus.READY
        assert source.indexing_status == SourceStatus.PENDING
        assert generator.calls == [(source.id, str(sample_project))]
        assert "skipped empty module" in job_store.messages(job.id)

    @pytest.mark.asyncio
    async def test_missing_generator_fails_job(
        self, job_store, source_store, pipeline, sample_project
    ):
        source = await source_store.create_local(str(sample_project))
        job = await job_store.create_job(source.id, SourceKind.LOCAL, JobType.WIKI_GENERATE)
        processor = TaskProcessor(job_store, source_store, pipeline, config=FAST)

        await run_all(processor)

        assert job_store.jobs[job.id].status == JobStatus.FAILED
        assert "No wiki generator configured" in job_store.jobs[job.id].error_message
        assert source.wiki_status == SourceStatus.ERROR
