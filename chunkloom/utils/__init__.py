"""Shared utilities: path filtering, hashing, retry and concurrency helpers."""

from .concurrency import ConcurrencyLimiter, p_limit
from .file_patterns import PathFilter, walk_directory_tree
from .hashing import content_hash
from .retry import RetryOptions, is_retryable_error, with_retry

__all__ = [
    "ConcurrencyLimiter",
    "PathFilter",
    "RetryOptions",
    "content_hash",
    "is_retryable_error",
    "p_limit",
    "walk_directory_tree",
    "with_retry",
]
