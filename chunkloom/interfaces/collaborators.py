"""Narrow interfaces for collaborators the worker consumes but does not own."""

from typing import Protocol

from chunkloom.core.models import (
    AbortSignal,
    CloneResult,
    GenerationResult,
    ProgressCallback,
    PullResult,
    Source,
)


class GitClient(Protocol):
    """Clones and updates remote sources."""

    async def clone(self, source: Source) -> CloneResult: ...

    async def pull(self, source: Source) -> PullResult: ...


class ContentGenerator(Protocol):
    """Generates derived content (snippets, wiki pages) for an indexed source."""

    async def generate(
        self,
        source_id: str,
        source_path: str,
        abort_signal: AbortSignal,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult: ...
