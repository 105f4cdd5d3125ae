"""Index command module - indexes a directory into the local database."""

import argparse
import sys
from pathlib import Path

from loguru import logger

from chunkloom.core.config.config import Config
from chunkloom.core.exceptions import is_cancellation
from chunkloom.core.models import IndexingOptions, IndexingResult, ProgressUpdate
from chunkloom.core.types.common import JobStatus, JobType, SourceStatus
from chunkloom.providers.database.duckdb_provider import DuckDBProvider
from chunkloom.providers.factory import create_indexing_pipeline
from chunkloom.services.task_logger import TaskLogger

from ..utils.rich_output import RichOutputFormatter


async def index_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the index command.

    Args:
        args: Parsed command-line arguments
        config: Validated configuration
    """
    formatter = RichOutputFormatter(verbose=args.verbose)
    root = Path(args.path).expanduser().resolve()

    if not root.is_dir():
        formatter.error(f"Path does not exist or is not a directory: {root}")
        sys.exit(1)

    db = DuckDBProvider.from_config(config.database)
    await db.connect()
    try:
        source = await db.sources.find_by_path(str(root))
        if source is None:
            source = await db.sources.create_local(str(root))
            logger.debug(f"Registered new source {source.id} for {root}")

        pipeline = create_indexing_pipeline(config, db)
        formatter.startup_info(
            directory=str(root),
            database=str(db.db_path),
            summarizer=None if args.skip_llm else pipeline.summarizer_name,
            embedder=pipeline.embedder_name,
        )

        options = IndexingOptions(
            force=config.indexing.force_reindex,
            dry_run=args.dry_run,
            skip_llm=args.skip_llm,
            verbose=args.verbose,
        )

        task_logger: TaskLogger | None = None
        if not args.dry_run:
            job_type = JobType.FULL_INDEX if options.force else JobType.INCREMENTAL
            job = await db.jobs.create_job(
                source.id, source.kind, job_type, triggered_by="CLI"
            )
            await db.jobs.update_status(job.id, JobStatus.RUNNING)
            task_logger = TaskLogger(job.id, db.jobs)
            task_logger.start()
            task_logger.info(f"Starting indexing for {root}", phase="collecting")
            await db.sources.update_status(
                source.id, "indexing_status", SourceStatus.INDEXING
            )

        try:
            try:
                with formatter.create_progress_display() as progress:

                    def on_progress(update: ProgressUpdate) -> None:
                        progress.on_progress(update)
                        if task_logger is not None:
                            task_logger.progress(update)

                    result = await pipeline.index(
                        source.id, root, options, on_progress=on_progress
                    )
            except Exception as e:
                if task_logger is not None:
                    await _record_interrupted(db, source.id, e, task_logger)
                raise

            if task_logger is not None:
                await _record_result(db, source.id, result, task_logger)
        finally:
            if task_logger is not None:
                await task_logger.close()
    finally:
        await db.disconnect()

    formatter.completion_summary(result)
    if result.fatal_errors:
        sys.exit(1)


async def _record_result(
    db: DuckDBProvider,
    source_id: str,
    result: IndexingResult,
    task_logger: TaskLogger,
) -> None:
    job_id = task_logger.job_id
    for error in result.errors:
        task_logger.log(
            "WARN" if error.recoverable else "ERROR",
            error.message,
            phase=error.phase.value,
            file_path=error.file,
        )

    if result.fatal_errors:
        message = result.fatal_errors[0].message
        await db.jobs.update_status(
            job_id,
            JobStatus.FAILED,
            error_message=message,
            files_processed=result.files_processed,
            chunks_created=result.chunks_created,
            summaries_generated=result.summaries_generated,
        )
        await db.sources.update_status(
            source_id, "indexing_status", SourceStatus.ERROR, error=message
        )
        task_logger.error(f"Task failed: {message}", phase="failed")
        return

    await db.jobs.update_status(
        job_id,
        JobStatus.COMPLETED,
        files_processed=result.files_processed,
        chunks_created=result.chunks_created,
        summaries_generated=result.summaries_generated,
    )
    await db.sources.update_status(source_id, "indexing_status", SourceStatus.READY)
    await db.sources.update_index_stats(
        source_id,
        file_count=result.files_processed,
        chunk_count=result.chunks_created,
        summary_count=result.summaries_generated,
    )
    task_logger.info(
        f"Indexing completed in {result.duration_ms:.0f}ms", phase="storing"
    )


async def _record_interrupted(
    db: DuckDBProvider,
    source_id: str,
    error: Exception,
    task_logger: TaskLogger,
) -> None:
    job_id = task_logger.job_id
    if is_cancellation(error):
        await db.jobs.update_status(job_id, JobStatus.CANCELLED)
        await db.sources.update_status(source_id, "indexing_status", SourceStatus.PENDING)
        task_logger.info("Task cancelled by user", phase="cancelled")
        return

    message = str(error) or type(error).__name__
    await db.jobs.update_status(job_id, JobStatus.FAILED, error_message=message)
    await db.sources.update_status(
        source_id, "indexing_status", SourceStatus.ERROR, error=message
    )
    task_logger.error(f"Task failed: {message}", phase="failed")
