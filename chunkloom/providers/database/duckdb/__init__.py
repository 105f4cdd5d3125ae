"""DuckDB repositories for chunkloom."""

from .connection_manager import DuckDBConnectionManager
from .file_metadata_repository import DuckDBFileMetadataRepository
from .job_repository import DuckDBJobRepository
from .source_repository import DuckDBSourceRepository
from .vector_store import DuckDBVectorStore

__all__ = [
    "DuckDBConnectionManager",
    "DuckDBFileMetadataRepository",
    "DuckDBJobRepository",
    "DuckDBSourceRepository",
    "DuckDBVectorStore",
]
