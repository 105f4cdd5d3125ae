"""Indexing pipeline for chunkloom - orchestrates indexing runs.

A run executes seven phases strictly in order: collect, diff, dry-run
short-circuit, parse/chunk, summarize, embed and store. Cancellation is
checked before collection, before each file and chunk, and before storing;
a cancelled run raises TaskCancelledError and leaves no partial metadata for
files it did not finish.

File-scoped failures (parse, per-chunk LLM) are recorded and skipped.
Run-scoped failures (listing the tree, the embedding batch, storage) are
recorded as non-recoverable errors and end the run with a structured result.
"""

import asyncio
from datetime import datetime
from pathlib import Path

from loguru import logger

from chunkloom.change_detection.file_change_detector import FileChangeDetector
from chunkloom.collectors.file_collector import FileCollector
from chunkloom.core.config.indexing_config import IndexingConfig
from chunkloom.core.exceptions import SourceNotFoundError, TaskCancelledError
from chunkloom.core.models import (
    CollectedFile,
    FileMetadata,
    IndexingOptions,
    IndexingResult,
    ProcessedChunk,
    ProgressCallback,
    VectorRecord,
)
from chunkloom.core.types.common import ErrorPhase, PipelinePhase
from chunkloom.interfaces.embedding_provider import EmbeddingProvider
from chunkloom.interfaces.stores import MetadataStore, VectorStore
from chunkloom.interfaces.summarizer import Summarizer
from chunkloom.parsers.ast_chunker import AstChunker
from chunkloom.services.pipeline_context import PipelineContext
from chunkloom.utils.retry import RetryOptions, with_retry


class IndexingPipeline:
    """Runs incremental or forced indexing of a local directory."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        summarizer: Summarizer | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        vector_store: VectorStore | None = None,
        chunker: AstChunker | None = None,
        indexing_config: IndexingConfig | None = None,
        retry_options: RetryOptions | None = None,
    ):
        self._metadata_store = metadata_store
        self._summarizer = summarizer
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._chunker = chunker or AstChunker()
        self._indexing_config = indexing_config or IndexingConfig()
        self._retry_options = retry_options or RetryOptions()

    @property
    def summarizer_name(self) -> str | None:
        return self._summarizer.name if self._summarizer is not None else None

    @property
    def embedder_name(self) -> str | None:
        if self._embedding_provider is None:
            return None
        return f"{self._embedding_provider.name} ({self._embedding_provider.model})"

    async def index(
        self,
        source_id: str,
        root_path: str | Path,
        options: IndexingOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IndexingResult:
        """Index a directory into chunks, embeddings and file metadata.

        Args:
            source_id: Source the files belong to
            root_path: Directory to index
            options: Run options; defaults to an incremental run
            on_progress: Receives progress updates for phases that do work

        Returns:
            IndexingResult with counters, duration and phase-tagged errors

        Raises:
            SourceNotFoundError: If ``root_path`` is missing or not a directory
            TaskCancelledError: If the abort signal is set at a checkpoint
        """
        root = Path(root_path).expanduser().resolve()
        if not root.is_dir():
            raise SourceNotFoundError(f"Source path is not a directory: {root}")

        options = options or IndexingOptions()
        ctx = PipelineContext(source_id, str(root), options, on_progress)
        collector = FileCollector(
            root,
            include=options.include,
            exclude=options.exclude,
            config=self._indexing_config,
        )
        ctx.log(f"Starting indexing for {root}")

        # Phase 1: collect
        ctx.throw_if_cancelled()
        ctx.report_progress(PipelinePhase.COLLECTING, 0, 0)
        try:
            current_paths = await asyncio.to_thread(collector.list_paths)
        except OSError as e:
            ctx.add_error(ErrorPhase.COLLECT, f"Failed to list files: {e}", recoverable=False)
            ctx.log_error("Failed to list files", e)
            return ctx.build_result()
        ctx.report_progress(PipelinePhase.COLLECTING, len(current_paths), len(current_paths))
        ctx.log(f"Found {len(current_paths)} files")

        # Phase 2: diff
        already_read: dict[str, CollectedFile] = {}
        if ctx.should_force():
            to_process = current_paths
            ctx.files_added = len(to_process)
        else:
            stored = await self._metadata_store.get_fingerprint_map(source_id)
            detector = FileChangeDetector(collector)
            changes = await asyncio.to_thread(detector.detect_changes, stored, current_paths)

            ctx.files_added = len(changes.added)
            ctx.files_modified = len(changes.modified)
            ctx.files_removed = len(changes.removed)
            ctx.log(
                f"Changes: +{ctx.files_added} ~{ctx.files_modified} -{ctx.files_removed}"
            )

            if changes.removed:
                removed_paths = [record.file_path for record in changes.removed]
                if not await self._remove_files(ctx, removed_paths):
                    return ctx.build_result()

            to_process = changes.paths_to_process()
            already_read = changes.collected

        # Phase 3: dry run
        if ctx.is_dry_run():
            ctx.log("Dry run - no files will be processed")
            ctx.files_processed = len(to_process)
            return ctx.build_result()

        if not to_process:
            ctx.log("No files to process")
            return ctx.build_result()

        # Phase 4: parse and chunk
        files, chunks_by_file = await self._parse_files(ctx, collector, to_process, already_read)
        all_chunks = [chunk for chunks in chunks_by_file.values() for chunk in chunks]
        ctx.chunks_created = len(all_chunks)
        ctx.log(f"Created {len(all_chunks)} chunks from {len(files)} files")

        # Phase 5: summarize
        if self._summarizer is not None and not ctx.should_skip_llm() and all_chunks:
            await self._summarize(ctx, all_chunks)

        # Phase 6: embed
        if self._embedding_provider is not None and all_chunks:
            if not await self._embed(ctx, all_chunks):
                return ctx.build_result()

        # Phase 7: store
        ctx.throw_if_cancelled()
        await self._store(ctx, files, chunks_by_file)

        ctx.log(f"Indexing complete in {ctx.duration_ms:.0f}ms")
        return ctx.build_result()

    async def _remove_files(self, ctx: PipelineContext, paths: list[str]) -> bool:
        try:
            await self._metadata_store.delete_by_paths(ctx.source_id, paths)
            if self._vector_store is not None:
                await self._vector_store.delete_by_file_paths(ctx.source_id, paths)
        except Exception as e:
            ctx.add_error(
                ErrorPhase.STORE, f"Failed to remove deleted files: {e}", recoverable=False
            )
            ctx.log_error("Failed to remove deleted files", e)
            return False
        ctx.log(f"Removed {len(paths)} deleted files")
        return True

    async def _parse_files(
        self,
        ctx: PipelineContext,
        collector: FileCollector,
        paths: list[str],
        already_read: dict[str, CollectedFile],
    ) -> tuple[list[CollectedFile], dict[str, list[ProcessedChunk]]]:
        total = len(paths)
        ctx.report_progress(PipelinePhase.PARSING, 0, total)

        files: list[CollectedFile] = []
        chunks_by_file: dict[str, list[ProcessedChunk]] = {}

        for index, rel_path in enumerate(paths, start=1):
            ctx.throw_if_cancelled()
            ctx.report_progress(PipelinePhase.PARSING, index, total, rel_path)

            collected = already_read.get(rel_path)
            if collected is None:
                collected = await asyncio.to_thread(collector.collect_file, rel_path)
            if collected is None:
                ctx.add_error(ErrorPhase.PARSE, "File could not be read", file=rel_path)
                continue

            try:
                chunks = self._chunker.chunk_file(
                    collected.file_path,
                    collected.content,
                    ctx.source_id,
                    collected.content_hash,
                    collected.language,
                )
            except Exception as e:
                ctx.add_error(ErrorPhase.PARSE, str(e), file=rel_path)
                ctx.log_error(f"Failed to parse {rel_path}", e)
                continue

            files.append(collected)
            chunks_by_file[rel_path] = [ProcessedChunk(chunk=chunk) for chunk in chunks]
            ctx.files_processed += 1

        return files, chunks_by_file

    async def _summarize(self, ctx: PipelineContext, chunks: list[ProcessedChunk]) -> None:
        assert self._summarizer is not None
        total = len(chunks)
        ctx.report_progress(PipelinePhase.SUMMARIZING, 0, total)

        for index, processed in enumerate(chunks, start=1):
            ctx.throw_if_cancelled()
            chunk = processed.chunk
            ctx.report_progress(PipelinePhase.SUMMARIZING, index, total, chunk.file_path)

            summarizer = self._summarizer
            try:
                result = await with_retry(
                    lambda: summarizer.summarize(
                        chunk.content, chunk.language, chunk.symbol_name
                    ),
                    self._retry_options,
                    abort_signal=ctx.options.abort_signal,
                )
            except TaskCancelledError:
                raise
            except Exception as e:
                ctx.add_error(ErrorPhase.LLM, str(e), file=chunk.file_path)
                logger.debug(f"Summary failed for {chunk.file_path}:{chunk.start_line}: {e}")
                continue

            if result.summary:
                processed.summary = result.summary
                processed.keywords = list(result.keywords)
                ctx.summaries_generated += 1

        ctx.log(f"Generated {ctx.summaries_generated} summaries")

    async def _embed(self, ctx: PipelineContext, chunks: list[ProcessedChunk]) -> bool:
        """Embed chunks with content in one batch. Returns False on failure."""
        assert self._embedding_provider is not None
        total = len(chunks)
        ctx.report_progress(PipelinePhase.EMBEDDING, 0, total)

        targets: list[ProcessedChunk] = []
        for processed in chunks:
            ctx.throw_if_cancelled()
            if processed.chunk.content.strip():
                targets.append(processed)
        if not targets:
            return True

        texts = [processed.embedding_text for processed in targets]
        provider = self._embedding_provider
        try:
            vectors = await with_retry(
                lambda: provider.embed_batch(texts),
                self._retry_options,
                abort_signal=ctx.options.abort_signal,
            )
            if len(vectors) != len(texts):
                raise ValueError(
                    f"Embedding count mismatch: expected {len(texts)}, got {len(vectors)}"
                )
        except TaskCancelledError:
            raise
        except Exception as e:
            ctx.add_error(ErrorPhase.EMBED, str(e), recoverable=False)
            ctx.log_error("Failed to generate embeddings", e)
            return False

        for processed, vector in zip(targets, vectors):
            processed.embedding = vector
        ctx.report_progress(PipelinePhase.EMBEDDING, total, total)
        ctx.log(f"Generated {len(vectors)} embeddings")
        return True

    async def _store(
        self,
        ctx: PipelineContext,
        files: list[CollectedFile],
        chunks_by_file: dict[str, list[ProcessedChunk]],
    ) -> None:
        total = len(files)
        ctx.report_progress(PipelinePhase.STORING, 0, total)
        processed_paths = [f.file_path for f in files]

        try:
            if ctx.should_force():
                await self._metadata_store.delete_by_source(ctx.source_id)
                if self._vector_store is not None:
                    await self._vector_store.delete_by_source_id(ctx.source_id)
            elif self._vector_store is not None and processed_paths:
                await self._vector_store.delete_by_file_paths(ctx.source_id, processed_paths)

            if self._vector_store is not None:
                records = [
                    VectorRecord(
                        id=processed.chunk.id,
                        vector=processed.embedding,
                        payload=processed.to_payload(),
                    )
                    for chunks in chunks_by_file.values()
                    for processed in chunks
                    if processed.embedding is not None
                ]
                if records:
                    await self._vector_store.upsert(records)
                    ctx.log(f"Stored {len(records)} vectors")
        except Exception as e:
            ctx.add_error(ErrorPhase.STORE, f"Failed to store vectors: {e}", recoverable=False)
            ctx.log_error("Failed to store vectors", e)
            return

        for index, collected in enumerate(files, start=1):
            file_chunks = chunks_by_file.get(collected.file_path, [])
            metadata = FileMetadata(
                source_id=ctx.source_id,
                file_path=collected.file_path,
                absolute_path=collected.absolute_path,
                content_hash=collected.content_hash,
                size=collected.size,
                language=collected.language,
                last_modified=collected.last_modified,
                last_indexed=datetime.now(),
                chunk_count=len(file_chunks),
                has_summary=any(processed.summary for processed in file_chunks),
            )
            try:
                await self._metadata_store.upsert(metadata)
            except Exception as e:
                ctx.add_error(
                    ErrorPhase.STORE,
                    f"Failed to store metadata: {e}",
                    file=collected.file_path,
                    recoverable=False,
                )
                ctx.log_error(f"Failed to store metadata for {collected.file_path}", e)
                return
            ctx.report_progress(PipelinePhase.STORING, index, total, collected.file_path)
