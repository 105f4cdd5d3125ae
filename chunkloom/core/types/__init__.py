"""Core type definitions."""

from .common import (
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

__all__ = [
    "ChangeStatus",
    "ChunkLevel",
    "ChunkType",
    "ErrorPhase",
    "JobStatus",
    "JobType",
    "Language",
    "PipelinePhase",
    "SourceKind",
    "SourceStatus",
    "Visibility",
]
