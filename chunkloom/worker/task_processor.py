"""Task processor for chunkloom - claims pending jobs and runs them.

# CONCURRENCY: one event loop; up to ``WorkerConfig.concurrency`` jobs run as
#   asyncio tasks at once. The claim in JobStore.claim_pending is the only
#   exclusion between processors.
# RECOVERY: jobs left RUNNING by a crashed process are cancelled on start and
#   in-flight source statuses are reset to PENDING.
"""

import asyncio
from pathlib import Path

from loguru import logger

from chunkloom.core.config.worker_config import WorkerConfig
from chunkloom.core.exceptions import (
    IndexingFailedError,
    ProviderNotConfiguredError,
    SourceNotFoundError,
    is_cancellation,
)
from chunkloom.core.models import IndexingOptions, Job, Source
from chunkloom.core.types.common import JobStatus, JobType, SourceKind, SourceStatus
from chunkloom.interfaces.collaborators import ContentGenerator, GitClient
from chunkloom.interfaces.stores import JobStore, SourceStore
from chunkloom.services.indexing_pipeline import IndexingPipeline
from chunkloom.services.task_logger import TaskLogger
from chunkloom.worker.cancellation_token import CancellationToken

FOLLOW_ON_JOB_TYPES = (JobType.SNIPPET_GENERATE, JobType.WIKI_GENERATE)


class TaskProcessor:
    """Polls the job store and runs indexing and generation jobs."""

    def __init__(
        self,
        job_store: JobStore,
        source_store: SourceStore,
        pipeline: IndexingPipeline,
        git_client: GitClient | None = None,
        snippet_generator: ContentGenerator | None = None,
        wiki_generator: ContentGenerator | None = None,
        config: WorkerConfig | None = None,
    ):
        self._job_store = job_store
        self._source_store = source_store
        self._pipeline = pipeline
        self._git_client = git_client
        self._snippet_generator = snippet_generator
        self._wiki_generator = wiki_generator
        self._config = config or WorkerConfig()

        self._running = False
        self._poll_task: asyncio.Task | None = None
        self._active_tasks: dict[str, asyncio.Task] = {}
        self._tokens: dict[str, CancellationToken] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_job_ids(self) -> list[str]:
        return list(self._active_tasks)

    async def start(self) -> None:
        """Recover stale jobs, then start polling in the background."""
        if self._running:
            logger.warning("Task processor already running")
            return

        await self.recover_stale_jobs()

        self._running = True
        logger.info(
            f"Task processor started (poll interval {self._config.poll_interval}s, "
            f"concurrency {self._config.concurrency})"
        )
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling and wait for active jobs to finish."""
        logger.info("Stopping task processor...")
        self._running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self.wait_for_active_jobs()
        logger.info("Task processor stopped")

    async def wait_for_active_jobs(self) -> None:
        active = list(self._active_tasks.values())
        if not active:
            return
        logger.info(f"Waiting for {len(active)} active job(s) to complete...")
        await asyncio.gather(*active, return_exceptions=True)

    async def recover_stale_jobs(self) -> int:
        """Cancel jobs orphaned in RUNNING and reset in-flight source statuses.

        Returns:
            Number of jobs cancelled
        """
        cancelled = await self._job_store.cancel_all_running()
        reset = await self._source_store.reset_in_flight_statuses()
        if cancelled:
            logger.info(f"Recovered {cancelled} stale job(s) - marked as CANCELLED")
        if reset:
            logger.info(f"Reset {reset} source(s) with in-flight status to PENDING")
        return cancelled

    async def poll_once(self) -> int:
        """Claim pending jobs for the free slots and start them.

        Returns:
            Number of jobs started
        """
        slots = self._config.concurrency - len(self._active_tasks)
        if slots <= 0:
            return 0

        jobs = await self._job_store.claim_pending(slots, exclude_ids=self.active_job_ids)
        for job in jobs:
            self._active_tasks[job.id] = asyncio.create_task(
                self._process_job(job), name=f"job-{job.id}"
            )
        return len(jobs)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Poll error: {e}")
            await asyncio.sleep(self._config.poll_interval)

    async def _process_job(self, job: Job) -> None:
        token = CancellationToken(
            job.id, self._job_store, self._config.cancellation_poll_interval
        )
        task_logger = TaskLogger(job.id, self._job_store, self._config.log_flush_interval)
        self._tokens[job.id] = token
        token.start_polling()
        task_logger.start()

        logger.info(
            f"Processing job {job.id} ({job.job_type.value}) for "
            f"{job.source_kind.value} source {job.source_id}"
        )

        try:
            if await token.check_once():
                logger.info(f"Job {job.id} was cancelled before processing")
                await self._handle_cancelled(job, task_logger)
                return

            source = await self._source_store.get(job.source_id)
            if source is None:
                raise SourceNotFoundError(f"Source not found: {job.source_id}")

            source_path = await self._resolve_source_path(job, source, task_logger)

            if job.job_type.is_indexing:
                await self._run_indexing(job, source, source_path, token, task_logger)
            elif job.job_type == JobType.SNIPPET_GENERATE:
                await self._run_generation(
                    job, source, source_path, token, task_logger,
                    self._snippet_generator, "snippet",
                )
            elif job.job_type == JobType.WIKI_GENERATE:
                await self._run_generation(
                    job, source, source_path, token, task_logger,
                    self._wiki_generator, "wiki",
                )

            logger.info(f"Job {job.id} completed successfully")
        except Exception as e:
            try:
                if is_cancellation(e):
                    await self._handle_cancelled(job, task_logger)
                else:
                    await self._handle_failed(job, e, task_logger)
            except Exception as handler_error:
                logger.error(f"Failed to record outcome of job {job.id}: {handler_error}")
        finally:
            await token.stop_polling()
            self._tokens.pop(job.id, None)
            self._active_tasks.pop(job.id, None)
            await task_logger.close()

    async def _resolve_source_path(
        self, job: Job, source: Source, task_logger: TaskLogger
    ) -> str:
        if source.kind == SourceKind.LOCAL:
            if not source.path or not Path(source.path).is_dir():
                raise SourceNotFoundError(f"Source path does not exist: {source.path}")
            return source.path

        if not source.local_path:
            git_client = self._require_git_client()
            task_logger.info(f"Cloning {source.full_name}...", phase="clone")
            clone = await git_client.clone(source)
            await self._source_store.update_clone_info(
                source.id, clone.local_path, clone.commit_sha
            )
            task_logger.info(f"Cloned to {clone.local_path}", phase="clone")
            return clone.local_path

        if job.job_type == JobType.INCREMENTAL:
            git_client = self._require_git_client()
            task_logger.info(f"Pulling latest changes for {source.full_name}...", phase="pull")
            pull = await git_client.pull(source)
            if pull.has_changes and pull.commit_sha:
                task_logger.info(
                    f"Found {len(pull.changed_files)} changed files", phase="pull"
                )
                await self._source_store.update_commit(source.id, pull.commit_sha)
            else:
                task_logger.info("No changes detected", phase="pull")

        return source.local_path

    def _require_git_client(self) -> GitClient:
        if self._git_client is None:
            raise ProviderNotConfiguredError("No git client configured for remote sources")
        return self._git_client

    async def _run_indexing(
        self,
        job: Job,
        source: Source,
        source_path: str,
        token: CancellationToken,
        task_logger: TaskLogger,
    ) -> None:
        await self._source_store.update_status(
            source.id, "indexing_status", SourceStatus.INDEXING
        )
        task_logger.info(f"Starting indexing for {source_path}", phase="collecting")

        options = IndexingOptions(
            force=job.job_type == JobType.FULL_INDEX,
            skip_llm=self._config.skip_llm,
            abort_signal=token.signal,
        )
        result = await self._pipeline.index(
            source.id, source_path, options, on_progress=task_logger.progress
        )

        for error in result.errors:
            task_logger.log(
                "WARN" if error.recoverable else "ERROR",
                error.message,
                phase=error.phase.value,
                file_path=error.file,
            )
        if result.fatal_errors:
            raise IndexingFailedError(result.fatal_errors)

        await self._job_store.update_status(
            job.id,
            JobStatus.COMPLETED,
            files_processed=result.files_processed,
            chunks_created=result.chunks_created,
            summaries_generated=result.summaries_generated,
        )
        await self._source_store.update_status(source.id, "indexing_status", SourceStatus.READY)
        await self._source_store.update_index_stats(
            source.id,
            file_count=result.files_processed,
            chunk_count=result.chunks_created,
            summary_count=result.summaries_generated,
        )
        task_logger.info(
            f"Indexing completed in {result.duration_ms:.0f}ms", phase="storing"
        )

        if job.job_type == JobType.FULL_INDEX:
            await self._enqueue_follow_on_jobs(job)

    async def _enqueue_follow_on_jobs(self, job: Job) -> None:
        generators = {
            JobType.SNIPPET_GENERATE: self._snippet_generator,
            JobType.WIKI_GENERATE: self._wiki_generator,
        }
        queued = []
        try:
            for job_type in FOLLOW_ON_JOB_TYPES:
                if generators[job_type] is None:
                    logger.debug(
                        f"No generator for {job_type.value}, not queuing it for "
                        f"source {job.source_id}"
                    )
                    continue
                await self._job_store.create_job(
                    job.source_id, job.source_kind, job_type, triggered_by="WORKER"
                )
                await self._source_store.update_status(
                    job.source_id, job_type.status_field, SourceStatus.PENDING
                )
                queued.append(job_type.value)
            if queued:
                logger.info(f"Queued {', '.join(queued)} for source {job.source_id}")
        except Exception as e:
            # The index itself succeeded; only the follow-on work is lost
            logger.error(f"Failed to create follow-on jobs for {job.source_id}: {e}")

    async def _run_generation(
        self,
        job: Job,
        source: Source,
        source_path: str,
        token: CancellationToken,
        task_logger: TaskLogger,
        generator: ContentGenerator | None,
        label: str,
    ) -> None:
        if generator is None:
            raise ProviderNotConfiguredError(f"No {label} generator configured")

        status_field = job.job_type.status_field
        await self._source_store.update_status(source.id, status_field, SourceStatus.INDEXING)
        task_logger.info(f"Starting {label} generation", phase="init")

        result = await generator.generate(
            source.id, source_path, token.signal, task_logger.progress
        )
        token.throw_if_cancelled()

        task_logger.info(
            f"Generated {result.item_count} {label} item(s) in {result.duration_ms:.0f}ms",
            phase="complete",
            metadata={
                "item_count": result.item_count,
                "duration_ms": result.duration_ms,
                "error_count": len(result.errors),
            },
        )
        for error in result.errors:
            task_logger.log(
                "WARN" if error.recoverable else "ERROR",
                error.message,
                phase=error.phase or "error",
                file_path=error.file,
            )

        await self._job_store.update_status(
            job.id, JobStatus.COMPLETED, chunks_created=result.item_count
        )
        await self._source_store.update_status(source.id, status_field, SourceStatus.READY)

    async def _handle_cancelled(self, job: Job, task_logger: TaskLogger) -> None:
        logger.info(f"Job {job.id} was cancelled")
        await self._job_store.update_status(job.id, JobStatus.CANCELLED)
        await self._source_store.update_status(
            job.source_id, job.job_type.status_field, SourceStatus.PENDING
        )
        task_logger.info("Task cancelled by user", phase="cancelled")

    async def _handle_failed(
        self, job: Job, error: Exception, task_logger: TaskLogger
    ) -> None:
        message = str(error) or type(error).__name__
        logger.error(f"Job {job.id} failed: {message}")
        await self._job_store.update_status(job.id, JobStatus.FAILED, error_message=message)
        await self._source_store.update_status(
            job.source_id, job.job_type.status_field, SourceStatus.ERROR, error=message
        )
        task_logger.error(f"Task failed: {message}", phase="failed")
