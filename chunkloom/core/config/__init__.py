"""Configuration package for chunkloom."""

from .chunking_config import ChunkingConfig
from .config import Config, get_config, reset_config, set_config
from .database_config import DatabaseConfig
from .embedding_config import EmbeddingConfig
from .indexing_config import DEFAULT_EXCLUDES, IndexingConfig
from .llm_config import LLMConfig
from .worker_config import WorkerConfig

__all__ = [
    "ChunkingConfig",
    "Config",
    "DEFAULT_EXCLUDES",
    "DatabaseConfig",
    "EmbeddingConfig",
    "IndexingConfig",
    "LLMConfig",
    "WorkerConfig",
    "get_config",
    "reset_config",
    "set_config",
]
