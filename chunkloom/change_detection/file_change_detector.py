"""Change detection against previously stored fingerprints.

Incremental indexing relies on this: only added and modified files are
re-processed, and only removed files have their metadata and vectors deleted.
"""

from typing import Iterable, Mapping

from loguru import logger

from chunkloom.collectors.file_collector import FileCollector
from chunkloom.core.models import (
    ChangeSet,
    CollectedFile,
    FileChangeRecord,
    FileMetadata,
)
from chunkloom.core.types.common import ChangeStatus


def create_stored_files_map(records: Iterable[FileMetadata]) -> dict[str, str]:
    """Build the ``{file_path: content_hash}`` map the detector consumes."""
    return {record.file_path: record.content_hash for record in records}


def _record(collected: CollectedFile, status: ChangeStatus) -> FileChangeRecord:
    return FileChangeRecord(
        file_path=collected.file_path,
        status=status,
        content_hash=collected.content_hash,
        size=collected.size,
        language=collected.language,
    )


class FileChangeDetector:
    """Classifies current paths as added, modified, removed or unchanged."""

    def __init__(self, collector: FileCollector):
        self._collector = collector

    def detect_changes(
        self, stored: Mapping[str, str], current_paths: Iterable[str]
    ) -> ChangeSet:
        """Diff current files against stored fingerprints.

        Each current path is read and hashed at most once. Removed paths are
        never read. A current path that cannot be read is left out of every
        bucket.

        Args:
            stored: Previously indexed ``{file_path: content_hash}``
            current_paths: Relative paths of the files eligible now

        Returns:
            ChangeSet with disjoint buckets; ``collected`` holds the added and
            modified files read while detecting
        """
        changes = ChangeSet()
        current = list(dict.fromkeys(current_paths))
        current_set = set(current)

        for rel_path in current:
            collected = self._collector.collect_file(rel_path)
            if collected is None:
                continue

            previous_hash = stored.get(rel_path)
            if previous_hash is None:
                changes.added.append(_record(collected, ChangeStatus.ADDED))
                changes.collected[rel_path] = collected
            elif previous_hash != collected.content_hash:
                changes.modified.append(_record(collected, ChangeStatus.MODIFIED))
                changes.collected[rel_path] = collected
            else:
                changes.unchanged.append(_record(collected, ChangeStatus.UNCHANGED))

        for rel_path in stored:
            if rel_path not in current_set:
                changes.removed.append(
                    FileChangeRecord(file_path=rel_path, status=ChangeStatus.REMOVED)
                )

        logger.debug(
            f"Changes: +{len(changes.added)} ~{len(changes.modified)} "
            f"-{len(changes.removed)} ={len(changes.unchanged)}"
        )
        return changes
