"""Common enumerations shared across chunkloom.

These are plain string enums so they serialize straight into the database and
into vector payloads without conversion.
"""

from enum import Enum
from pathlib import Path


class Language(str, Enum):
    """Languages the symbol extractor understands."""

    TYPESCRIPT = "typescript"
    PYTHON = "python"

    @classmethod
    def from_file_extension(cls, file_path: str | Path) -> "Language | None":
        """Map a file path to its language, or None when unsupported."""
        suffix = Path(file_path).suffix.lower()
        return _EXTENSION_MAP.get(suffix)

    @classmethod
    def get_all_extensions(cls) -> list[str]:
        """Return every supported file extension."""
        return sorted(_EXTENSION_MAP.keys())

    def get_extensions(self) -> list[str]:
        """Return the file extensions for this language."""
        return sorted(ext for ext, lang in _EXTENSION_MAP.items() if lang is self)


_EXTENSION_MAP: dict[str, Language] = {
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
}


class ChunkType(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    FILE_SUMMARY = "file_summary"


class ChunkLevel(str, Enum):
    SUMMARY = "summary"
    IMPLEMENTATION = "implementation"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class ChangeStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class JobStatus(str, Enum):
    """Job lifecycle: PENDING -> RUNNING -> COMPLETED | FAILED | CANCELLED."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class JobType(str, Enum):
    FULL_INDEX = "FULL_INDEX"
    INCREMENTAL = "INCREMENTAL"
    SNIPPET_GENERATE = "SNIPPET_GENERATE"
    WIKI_GENERATE = "WIKI_GENERATE"

    @property
    def is_indexing(self) -> bool:
        return self in (JobType.FULL_INDEX, JobType.INCREMENTAL)

    @property
    def status_field(self) -> str:
        """Source status column this job type drives."""
        if self is JobType.SNIPPET_GENERATE:
            return "snippet_status"
        if self is JobType.WIKI_GENERATE:
            return "wiki_status"
        return "indexing_status"


class SourceKind(str, Enum):
    LOCAL = "LOCAL"
    REMOTE = "REMOTE"


class SourceStatus(str, Enum):
    PENDING = "PENDING"
    INDEXING = "INDEXING"
    READY = "READY"
    ERROR = "ERROR"


class PipelinePhase(str, Enum):
    """Phases reported through the progress callback."""

    COLLECTING = "collecting"
    PARSING = "parsing"
    SUMMARIZING = "summarizing"
    EMBEDDING = "embedding"
    STORING = "storing"


class ErrorPhase(str, Enum):
    """Phase an indexing error is attributed to."""

    COLLECT = "collect"
    PARSE = "parse"
    LLM = "llm"
    EMBED = "embed"
    STORE = "store"

    @property
    def is_file_scoped(self) -> bool:
        return self in (ErrorPhase.PARSE, ErrorPhase.LLM)
