"""Indexing services: pipeline orchestration, run context and job logging."""

from .indexing_pipeline import IndexingPipeline
from .pipeline_context import PipelineContext
from .task_logger import TaskLogger

__all__ = ["IndexingPipeline", "PipelineContext", "TaskLogger"]
