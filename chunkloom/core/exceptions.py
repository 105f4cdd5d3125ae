"""Exception hierarchy for chunkloom."""

from typing import Any


class ChunkloomError(Exception):
    """Base class for chunkloom errors."""


class TaskCancelledError(ChunkloomError):
    """Raised at a cancellation checkpoint once a run has been cancelled.

    This is not a failure: callers reset durable state to a re-runnable
    status instead of an error status.
    """

    def __init__(self, job_id: str | None = None):
        self.job_id = job_id
        if job_id:
            super().__init__(f"Task {job_id} was cancelled")
        else:
            super().__init__("Task cancelled")


class SourceNotFoundError(ChunkloomError):
    """The source record or its directory does not exist."""


class IndexingFailedError(ChunkloomError):
    """An indexing run finished with run-scoped errors."""

    def __init__(self, errors: list[Any]):
        self.errors = errors
        first = errors[0].message if errors else "unknown error"
        super().__init__(f"Indexing failed: {first}")


class ProviderNotConfiguredError(ChunkloomError):
    """A collaborator needed by a job was not configured."""


def is_cancellation(error: BaseException) -> bool:
    """Return True if an error represents a cancelled task.

    Collaborators may raise their own exception types, so the message is
    checked as well as the type.
    """
    if isinstance(error, TaskCancelledError):
        return True
    return "cancelled" in str(error).lower()
