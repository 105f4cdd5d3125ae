"""DuckDB connection and schema management for chunkloom."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, TypeVar

import duckdb
from loguru import logger

T = TypeVar("T")


class DuckDBConnectionManager:
    """Owns the DuckDB connection and serializes every statement through it.

    DuckDB connections are not safe to share across threads, so all work runs
    on one dedicated executor thread. Async callers go through ``run``.
    """

    def __init__(self, db_path: Path | str):
        """Initialize DuckDB connection manager.

        Args:
            db_path: Path to DuckDB database file or ":memory:" for in-memory database
        """
        self._db_path = db_path
        self.connection: Any | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def db_path(self) -> Path | str:
        """Database connection path or identifier."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if database connection is active."""
        return self.connection is not None

    async def connect(self) -> None:
        """Open the connection on the executor thread and create the schema."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="chunkloom-duckdb"
            )
        await self.run(self._connect)

    def _connect(self) -> None:
        logger.info(f"Connecting to DuckDB database: {self.db_path}")

        # Ensure parent directory exists for file-based databases
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.connection = duckdb.connect(str(self.db_path))
            self.create_schema()
            logger.info("DuckDB connection established")
        except Exception as e:
            logger.error(f"DuckDB connection failed: {e}")
            raise

    async def disconnect(self) -> None:
        """Checkpoint, close the connection and stop the executor thread."""
        if self._executor is None:
            return
        try:
            await self.run(self._disconnect)
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _disconnect(self) -> None:
        if self.connection is None:
            return
        try:
            if not self.is_memory:
                self.connection.execute("CHECKPOINT")
                logger.debug("Database checkpoint completed before disconnect")
        except Exception as e:
            logger.error(f"Checkpoint failed during disconnect: {e}")
        finally:
            self.connection.close()
            self.connection = None
            logger.info("DuckDB connection closed")

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(*args)`` on the database thread."""
        if self._executor is None:
            raise RuntimeError("No database connection")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def execute(self, query: str, params: list[Any] | None = None) -> Any:
        """Execute a statement. Must be called on the database thread."""
        if self.connection is None:
            raise RuntimeError("No database connection")
        return self.connection.execute(query, params or [])

    def create_schema(self) -> None:
        """Create tables for sources, jobs, job logs, file metadata and vectors."""
        logger.debug("Creating DuckDB schema")

        if self.connection is None:
            raise RuntimeError("No database connection")

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS sources (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                kind TEXT NOT NULL,
                path TEXT,
                repo_url TEXT,
                full_name TEXT,
                default_branch TEXT,
                local_path TEXT,
                last_commit_sha TEXT,
                indexing_status TEXT NOT NULL DEFAULT 'PENDING',
                snippet_status TEXT NOT NULL DEFAULT 'PENDING',
                wiki_status TEXT NOT NULL DEFAULT 'PENDING',
                index_error TEXT,
                file_count INTEGER DEFAULT 0,
                chunk_count INTEGER DEFAULT 0,
                summary_count INTEGER DEFAULT 0,
                last_indexed_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Claim order follows insertion order, not the wall clock
        self.connection.execute("CREATE SEQUENCE IF NOT EXISTS jobs_seq")
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                seq BIGINT NOT NULL DEFAULT nextval('jobs_seq'),
                source_id TEXT NOT NULL,
                source_kind TEXT NOT NULL,
                job_type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                triggered_by TEXT NOT NULL DEFAULT 'CLI',
                cancel_requested BOOLEAN NOT NULL DEFAULT FALSE,
                files_processed INTEGER DEFAULT 0,
                chunks_created INTEGER DEFAULT 0,
                summaries_generated INTEGER DEFAULT 0,
                progress_phase TEXT,
                progress_current INTEGER DEFAULT 0,
                progress_total INTEGER DEFAULT 0,
                error_message TEXT,
                created_at TIMESTAMP,
                started_at TIMESTAMP,
                completed_at TIMESTAMP
            )
        """)

        self.connection.execute("CREATE SEQUENCE IF NOT EXISTS job_logs_seq")
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS job_logs (
                id BIGINT PRIMARY KEY DEFAULT nextval('job_logs_seq'),
                job_id TEXT NOT NULL,
                level TEXT NOT NULL,
                message TEXT NOT NULL,
                phase TEXT,
                file_path TEXT,
                metadata TEXT,
                created_at TIMESTAMP
            )
        """)

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS file_metadata (
                source_id TEXT NOT NULL,
                file_path TEXT NOT NULL,
                absolute_path TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                size BIGINT NOT NULL,
                language TEXT NOT NULL,
                last_modified DOUBLE,
                last_indexed TIMESTAMP,
                chunk_count INTEGER DEFAULT 0,
                has_summary BOOLEAN DEFAULT FALSE,
                PRIMARY KEY (source_id, file_path)
            )
        """)

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS vectors (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL,
                file_path TEXT,
                embedding FLOAT[] NOT NULL,
                payload TEXT NOT NULL
            )
        """)

        self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_job_logs_job ON job_logs(job_id)"
        )
