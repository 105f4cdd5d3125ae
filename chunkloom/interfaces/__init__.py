"""Interfaces between the pipeline, the worker and their collaborators."""

from .collaborators import ContentGenerator, GitClient
from .embedding_provider import EmbeddingProvider
from .stores import JobStore, MetadataStore, SourceStore, VectorStore
from .summarizer import Summarizer

__all__ = [
    "ContentGenerator",
    "EmbeddingProvider",
    "GitClient",
    "JobStore",
    "MetadataStore",
    "SourceStore",
    "Summarizer",
    "VectorStore",
]
