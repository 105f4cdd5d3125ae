"""Per-run state shared by the phases of the indexing pipeline."""

import time

from loguru import logger

from chunkloom.core.exceptions import TaskCancelledError
from chunkloom.core.models import (
    IndexingOptions,
    IndexingResult,
    PipelineError,
    ProgressCallback,
    ProgressUpdate,
)
from chunkloom.core.types.common import ErrorPhase, PipelinePhase

__all__ = ["PipelineContext", "ProgressCallback"]


class PipelineContext:
    """Counters, errors and options for one indexing run."""

    def __init__(
        self,
        source_id: str,
        source_path: str,
        options: IndexingOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.source_id = source_id
        self.source_path = source_path
        self.options = options or IndexingOptions()
        self._on_progress = on_progress
        self._errors: list[PipelineError] = []
        self._start_time = time.perf_counter()

        self.files_processed = 0
        self.files_added = 0
        self.files_modified = 0
        self.files_removed = 0
        self.chunks_created = 0
        self.summaries_generated = 0

    @property
    def errors(self) -> list[PipelineError]:
        return list(self._errors)

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self._start_time) * 1000

    def add_error(
        self,
        phase: ErrorPhase,
        message: str,
        file: str | None = None,
        recoverable: bool = True,
    ) -> PipelineError:
        error = PipelineError(
            phase=phase, message=message, file=file, recoverable=recoverable
        )
        self._errors.append(error)
        return error

    def report_progress(
        self,
        phase: PipelinePhase,
        current: int,
        total: int,
        current_file: str | None = None,
    ) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(
                ProgressUpdate(
                    phase=phase, current=current, total=total, current_file=current_file
                )
            )
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def log(self, message: str) -> None:
        if self.options.verbose:
            logger.info(f"[indexer] {message}")
        else:
            logger.debug(f"[indexer] {message}")

    def log_error(self, message: str, error: BaseException | None = None) -> None:
        if error is None:
            logger.error(f"[indexer] {message}")
        else:
            logger.error(f"[indexer] {message}: {error}")

    def is_cancelled(self) -> bool:
        signal = self.options.abort_signal
        return signal is not None and signal.is_set()

    def throw_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise TaskCancelledError()

    def should_force(self) -> bool:
        return self.options.force

    def is_dry_run(self) -> bool:
        return self.options.dry_run

    def should_skip_llm(self) -> bool:
        return self.options.skip_llm

    def build_result(self, success: bool | None = None) -> IndexingResult:
        """Snapshot counters into a result. Success defaults to "no errors"."""
        if success is None:
            success = not self._errors
        return IndexingResult(
            files_processed=self.files_processed,
            files_added=self.files_added,
            files_modified=self.files_modified,
            files_removed=self.files_removed,
            chunks_created=self.chunks_created,
            summaries_generated=self.summaries_generated,
            duration_ms=self.duration_ms,
            success=success,
            errors=self.errors,
        )
