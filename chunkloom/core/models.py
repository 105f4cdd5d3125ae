"""Domain models for chunkloom.

Records produced by collection and change detection are frozen: they are
created once per pass and discarded after a run. Chunks and job records are
plain dataclasses because the chunker and the stores fill them in stages.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

from chunkloom.core.types.common import (
    ChangeStatus,
    ChunkLevel,
    ChunkType,
    ErrorPhase,
    JobStatus,
    JobType,
    Language,
    PipelinePhase,
    SourceKind,
    SourceStatus,
    Visibility,
)


@dataclass(frozen=True)
class CollectedFile:
    """A file read from disk during one collection pass."""

    file_path: str
    absolute_path: str
    content: str
    size: int
    language: Language
    last_modified: float
    content_hash: str


@dataclass(frozen=True)
class FileChangeRecord:
    """Classification of a single path by the change detector."""

    file_path: str
    status: ChangeStatus
    content_hash: str | None = None
    size: int | None = None
    language: Language | None = None


@dataclass
class ChangeSet:
    """Result of one change detection pass."""

    added: list[FileChangeRecord] = field(default_factory=list)
    modified: list[FileChangeRecord] = field(default_factory=list)
    removed: list[FileChangeRecord] = field(default_factory=list)
    unchanged: list[FileChangeRecord] = field(default_factory=list)
    # Files read while detecting, keyed by relative path
    collected: dict[str, CollectedFile] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def paths_to_process(self) -> list[str]:
        return [r.file_path for r in self.added] + [r.file_path for r in self.modified]


@dataclass(frozen=True)
class ExtractedSymbol:
    """A declaration found by the symbol extractor.

    Lines are 1-based and inclusive, columns are 0-based.
    """

    name: str
    kind: ChunkType
    signature: str
    docstring: str | None
    start_line: int
    end_line: int
    start_column: int
    end_column: int
    body_start_line: int
    decorators: tuple[str, ...] = ()
    visibility: Visibility = Visibility.PUBLIC
    parent_symbol: str | None = None


@dataclass
class CodeChunk:
    """A unit of code text stored for retrieval."""

    id: str
    source_id: str
    level: ChunkLevel
    chunk_type: ChunkType
    language: Language
    content: str
    file_path: str
    start_line: int
    end_line: int
    file_hash: str
    content_hash: str
    signature: str | None = None
    symbol_name: str | None = None
    imports: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)
    parent_chunk_id: str | None = None
    child_chunk_ids: list[str] = field(default_factory=list)


@dataclass
class ProcessedChunk:
    """A chunk plus the output of the summarize and embed phases."""

    chunk: CodeChunk
    summary: str | None = None
    keywords: list[str] = field(default_factory=list)
    embedding: list[float] | None = None

    @property
    def embedding_text(self) -> str:
        if self.summary:
            return f"{self.summary}\n\n{self.chunk.content}"
        return self.chunk.content

    def to_payload(self) -> dict[str, Any]:
        chunk = self.chunk
        return {
            "source_id": chunk.source_id,
            "file_path": chunk.file_path,
            "start_line": chunk.start_line,
            "end_line": chunk.end_line,
            "language": chunk.language.value,
            "chunk_type": chunk.chunk_type.value,
            "chunk_level": chunk.level.value,
            "symbol_name": chunk.symbol_name,
            "signature": chunk.signature,
            "content": chunk.content,
            "summary": self.summary,
            "keywords": list(self.keywords),
            "parent_chunk_id": chunk.parent_chunk_id,
            "child_chunk_ids": list(chunk.child_chunk_ids),
            "imports": list(chunk.imports),
            "exports": list(chunk.exports),
        }


@dataclass(frozen=True)
class CodeSummary:
    summary: str
    keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VectorRecord:
    id: str
    vector: list[float]
    payload: dict[str, Any]


@dataclass(frozen=True)
class PipelineError:
    """An error recorded during an indexing run, tagged with its phase."""

    phase: ErrorPhase
    message: str
    file: str | None = None
    recoverable: bool = True


@dataclass(frozen=True)
class ProgressUpdate:
    phase: PipelinePhase
    current: int
    total: int
    current_file: str | None = None

    def describe(self) -> str:
        text = f"{self.phase.value}: {self.current}/{self.total}"
        if self.current_file:
            text += f" - {self.current_file}"
        return text


class AbortSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class IndexingOptions:
    """Options recognized by the indexing pipeline.

    ``concurrency`` is accepted but reserved; files are processed sequentially.
    """

    skip_llm: bool = False
    force: bool = False
    dry_run: bool = False
    verbose: bool = False
    concurrency: int = 1
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    abort_signal: asyncio.Event | AbortSignal | None = None


@dataclass
class IndexingResult:
    files_processed: int
    files_added: int
    files_modified: int
    files_removed: int
    chunks_created: int
    summaries_generated: int
    duration_ms: float
    success: bool
    errors: list[PipelineError] = field(default_factory=list)

    @property
    def fatal_errors(self) -> list[PipelineError]:
        return [e for e in self.errors if not e.recoverable]


@dataclass
class Job:
    id: str
    source_id: str
    source_kind: SourceKind
    job_type: JobType
    status: JobStatus = JobStatus.PENDING
    triggered_by: str = "CLI"
    files_processed: int = 0
    chunks_created: int = 0
    summaries_generated: int = 0
    progress_phase: str | None = None
    progress_current: int = 0
    progress_total: int = 0
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class JobLog:
    job_id: str
    level: str
    message: str
    phase: str | None = None
    file_path: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


@dataclass
class FileMetadata:
    source_id: str
    file_path: str
    absolute_path: str
    content_hash: str
    size: int
    language: Language
    last_modified: float
    last_indexed: datetime
    chunk_count: int = 0
    has_summary: bool = False


@dataclass
class Source:
    """A local directory or a remote repository that gets indexed."""

    id: str
    name: str
    kind: SourceKind = SourceKind.LOCAL
    path: str | None = None
    repo_url: str | None = None
    full_name: str | None = None
    default_branch: str | None = None
    local_path: str | None = None
    last_commit_sha: str | None = None
    indexing_status: SourceStatus = SourceStatus.PENDING
    snippet_status: SourceStatus = SourceStatus.PENDING
    wiki_status: SourceStatus = SourceStatus.PENDING
    index_error: str | None = None
    file_count: int = 0
    chunk_count: int = 0
    summary_count: int = 0
    last_indexed_at: datetime | None = None


@dataclass(frozen=True)
class CloneResult:
    local_path: str
    commit_sha: str | None = None


@dataclass(frozen=True)
class PullResult:
    has_changes: bool
    commit_sha: str | None = None
    changed_files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GenerationError:
    message: str
    recoverable: bool = True
    file: str | None = None
    phase: str | None = None


@dataclass
class GenerationResult:
    """Outcome of a snippet or wiki generation run."""

    item_count: int
    duration_ms: float = 0.0
    errors: list[GenerationError] = field(default_factory=list)


ProgressCallback = Callable[[ProgressUpdate], None]
