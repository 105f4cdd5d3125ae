"""File collection."""

from .file_collector import FileCollector

__all__ = ["FileCollector"]
