"""File pattern matching utilities for directory traversal.

# FILE_CONTEXT: Eligibility rules for files under an indexing root
# ROLE: Ignore rules (.gitignore syntax), extension allow-list, include globs
#
# Ignore rules use gitignore semantics via pathspec, so negation ("!keep.me"),
# directory-only patterns ("build/") and anchoring ("/dist") behave the way
# they do in git. Include globs are compiled to anchored regexes where "*"
# stays inside one path segment and "**" spans any depth.
"""

import os
import re
from pathlib import Path
from typing import Iterator

import pathspec
from loguru import logger

from chunkloom.core.config.indexing_config import DEFAULT_EXCLUDES
from chunkloom.core.types.common import Language


def _glob_to_regex(pattern: str) -> str:
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == n:
            parts.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return "".join(parts)


def compile_pattern(pattern: str, cache: dict[str, re.Pattern[str]]) -> re.Pattern[str]:
    """Compile an include glob to an anchored regex with caching.

    Args:
        pattern: Glob such as "src/**/*.ts" or "*.py"
        cache: Dictionary to cache compiled patterns

    Returns:
        Compiled regex pattern

    Note:
        Modifies cache as side effect
    """
    if pattern not in cache:
        cache[pattern] = re.compile(rf"\A{_glob_to_regex(pattern.lstrip('/'))}\Z")
    return cache[pattern]


def matches_include(
    rel_path: str, patterns: list[str], cache: dict[str, re.Pattern[str]]
) -> bool:
    """Check a relative POSIX path against include globs.

    Patterns containing a slash are matched against the whole relative path.
    Patterns without one match the file name at any depth, as in .gitignore.
    """
    filename = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        compiled = compile_pattern(pattern, cache)
        target = rel_path if "/" in pattern.rstrip("/") else filename
        if compiled.match(target):
            return True
    return False


def load_gitignore_patterns(root_dir: Path) -> list[str]:
    """Read the root .gitignore, if any.

    Returns:
        Raw pattern lines; blank lines and comments are left for pathspec
    """
    gitignore_path = root_dir / ".gitignore"
    if not gitignore_path.is_file():
        return []

    try:
        with open(gitignore_path, encoding="utf-8", errors="ignore") as f:
            return f.read().splitlines()
    except OSError as e:
        logger.warning(f"Could not read {gitignore_path}: {e}")
        return []


class PathFilter:
    """Decides which files under a root are eligible for indexing."""

    def __init__(
        self,
        root: Path,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        use_gitignore: bool = True,
    ):
        self.root = Path(root).resolve()
        self.include = list(include or [])

        lines = list(DEFAULT_EXCLUDES)
        if use_gitignore:
            lines.extend(load_gitignore_patterns(self.root))
        # Caller excludes come last so they win over .gitignore negations
        lines.extend(exclude or [])
        self._ignore_spec = pathspec.GitIgnoreSpec.from_lines(lines)
        self._pattern_cache: dict[str, re.Pattern[str]] = {}

    def relative_path(self, path: Path) -> str | None:
        """Relative POSIX path under the root, or None if outside it."""
        path = Path(path)
        if not path.is_absolute():
            return path.as_posix()
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        if is_dir:
            rel_path = rel_path.rstrip("/") + "/"
        return self._ignore_spec.match_file(rel_path)

    def language_for(self, path: str | Path) -> Language | None:
        return Language.from_file_extension(path)

    def should_include(self, path: Path) -> bool:
        """Apply ignore rules, the extension allow-list, then include globs."""
        rel_path = self.relative_path(path)
        if rel_path is None or rel_path in ("", "."):
            return False

        if self.is_ignored(rel_path):
            return False

        if self.language_for(rel_path) is None:
            return False

        if self.include and not matches_include(
            rel_path, self.include, self._pattern_cache
        ):
            return False

        return True

    def should_descend(self, directory: Path) -> bool:
        rel_path = self.relative_path(directory)
        if rel_path is None:
            return False
        if rel_path in ("", "."):
            return True
        return not self.is_ignored(rel_path, is_dir=True)


def walk_directory_tree(path_filter: PathFilter) -> Iterator[Path]:
    """Yield eligible files under the filter's root.

    Ignored directories are pruned in place, so their subtrees are never
    traversed. Directories deleted during the walk are skipped.

    Raises:
        OSError: If the root itself cannot be listed
    """
    root = path_filter.root

    def _on_error(error: OSError) -> None:
        if Path(error.filename or "") == root:
            raise error
        logger.warning(f"Skipping unreadable directory {error.filename}: {error}")

    for dirpath, dirnames, filenames in os.walk(root, topdown=True, onerror=_on_error):
        current_dir = Path(dirpath)

        dirnames[:] = sorted(
            d for d in dirnames if path_filter.should_descend(current_dir / d)
        )

        for filename in sorted(filenames):
            file_path = current_dir / filename
            if path_filter.should_include(file_path):
                yield file_path
