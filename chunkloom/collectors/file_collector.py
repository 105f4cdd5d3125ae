"""File collection for indexing runs.

Walks a source root with the path filter and reads eligible files. Listing is
cheap and reads nothing; collecting reads content, stats the file and
fingerprints the raw bytes.
"""

from pathlib import Path

from loguru import logger

from chunkloom.core.config.indexing_config import IndexingConfig
from chunkloom.core.models import CollectedFile
from chunkloom.utils.file_patterns import PathFilter, walk_directory_tree
from chunkloom.utils.hashing import content_hash


class FileCollector:
    """Lists and reads eligible files under a root directory."""

    def __init__(
        self,
        root: Path | str,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        config: IndexingConfig | None = None,
    ):
        self._config = config or IndexingConfig()
        self.root = Path(root).resolve()
        self.path_filter = PathFilter(
            self.root,
            include=[*self._config.include, *(include or [])],
            exclude=[*self._config.exclude, *(exclude or [])],
            use_gitignore=self._config.use_gitignore,
        )

    def list_paths(self) -> list[str]:
        """List eligible files as sorted relative POSIX paths.

        Raises:
            OSError: If the root directory cannot be read
        """
        paths = [
            file_path.relative_to(self.root).as_posix()
            for file_path in walk_directory_tree(self.path_filter)
        ]
        paths.sort()
        logger.debug(f"Found {len(paths)} eligible files under {self.root}")
        return paths

    def collect_file(self, rel_path: str) -> CollectedFile | None:
        """Read one file. Returns None, after logging, if it cannot be read."""
        absolute_path = self.root / rel_path
        language = self.path_filter.language_for(rel_path)
        if language is None:
            logger.debug(f"Skipping unsupported file {rel_path}")
            return None

        try:
            stat = absolute_path.stat()
            if stat.st_size > self._config.max_file_size_bytes:
                logger.warning(
                    f"Skipping {rel_path}: {stat.st_size} bytes exceeds "
                    f"{self._config.max_file_size_mb}MB limit"
                )
                return None
            raw = absolute_path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read {rel_path}: {e}")
            return None

        if b"\x00" in raw:
            logger.warning(f"Skipping {rel_path}: binary content")
            return None
        text = raw.decode("utf-8", errors="replace")

        return CollectedFile(
            file_path=rel_path,
            absolute_path=str(absolute_path),
            content=text,
            size=len(raw),
            language=language,
            last_modified=stat.st_mtime,
            content_hash=content_hash(raw),
        )

    def collect_files(self, paths: list[str]) -> list[CollectedFile]:
        """Read the given relative paths, skipping the ones that fail."""
        collected = []
        for rel_path in paths:
            collected_file = self.collect_file(rel_path)
            if collected_file is not None:
                collected.append(collected_file)

        skipped = len(paths) - len(collected)
        if skipped:
            logger.info(f"Collected {len(collected)} files ({skipped} skipped)")
        return collected
