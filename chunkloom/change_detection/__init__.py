"""Incremental change detection."""

from .file_change_detector import FileChangeDetector, create_stored_files_map

__all__ = ["FileChangeDetector", "create_stored_files_map"]
