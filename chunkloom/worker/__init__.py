"""Background job processing for chunkloom."""

from .cancellation_token import CancellationToken
from .task_processor import TaskProcessor

__all__ = ["CancellationToken", "TaskProcessor"]
