"""Rich-based output formatting for chunkloom CLI commands."""

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from chunkloom.core.models import IndexingResult, ProgressUpdate
from chunkloom.core.types.common import PipelinePhase

_PHASE_LABELS: dict[PipelinePhase, str] = {
    PipelinePhase.COLLECTING: "Collecting files",
    PipelinePhase.PARSING: "Parsing",
    PipelinePhase.SUMMARIZING: "Summarizing",
    PipelinePhase.EMBEDDING: "Embedding",
    PipelinePhase.STORING: "Storing",
}


class RichOutputFormatter:
    """Terminal UI formatter using Rich."""

    def __init__(self, verbose: bool = False, console: Console | None = None):
        self.verbose = verbose
        self.console = console or Console()

    def info(self, message: str) -> None:
        self.console.print(f"[blue][INFO][/blue] {message}")

    def success(self, message: str) -> None:
        self.console.print(f"[green][SUCCESS][/green] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow][WARN][/yellow] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red][ERROR][/red] {message}", style="red")

    def startup_info(
        self,
        directory: str,
        database: str,
        summarizer: str | None,
        embedder: str | None,
    ) -> None:
        """Display the run configuration in a styled panel."""
        info_table = Table.grid(padding=(0, 2))
        info_table.add_column(style="cyan")
        info_table.add_column()

        info_table.add_row("Directory:", f"[blue]{directory}[/blue]")
        info_table.add_row("Database:", f"[magenta]{database}[/magenta]")
        info_table.add_row("Summaries:", f"[yellow]{summarizer or 'disabled'}[/yellow]")
        info_table.add_row("Embeddings:", f"[yellow]{embedder or 'disabled'}[/yellow]")

        self.console.print(
            Panel(
                info_table,
                title="[bold cyan]chunkloom indexing[/bold cyan]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def completion_summary(self, result: IndexingResult) -> None:
        """Display the outcome of an indexing run."""
        summary_table = Table.grid(padding=(0, 2))
        summary_table.add_column(style="cyan")
        summary_table.add_column()

        summary_table.add_row("Processed:", f"[green]{result.files_processed}[/green] files")
        summary_table.add_row(
            "Changes:",
            f"[green]+{result.files_added}[/green] "
            f"[yellow]~{result.files_modified}[/yellow] "
            f"[red]-{result.files_removed}[/red]",
        )
        summary_table.add_row("Chunks:", f"[blue]{result.chunks_created}[/blue]")
        summary_table.add_row("Summaries:", f"[magenta]{result.summaries_generated}[/magenta]")
        summary_table.add_row("Errors:", f"[red]{len(result.errors)}[/red]")
        summary_table.add_row("Time:", f"[cyan]{result.duration_ms / 1000:.2f}s[/cyan]")

        if result.fatal_errors:
            title, style = "[bold red]Indexing Failed[/bold red]", "red"
        elif result.errors:
            title, style = "[bold yellow]Indexing Completed With Errors[/bold yellow]", "yellow"
        else:
            title, style = "[bold green]Indexing Complete[/bold green]", "green"
        self.console.print(Panel(summary_table, title=title, border_style=style, padding=(1, 2)))

        if self.verbose or not result.success:
            for error in result.errors:
                location = f" {error.file}" if error.file else ""
                self.warning(f"[{error.phase.value}]{location}: {error.message}")

    def create_progress_display(self) -> "ProgressManager":
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("[dim]{task.fields[info]}"),
            console=self.console,
            transient=False,
        )
        return ProgressManager(progress)


class ProgressManager:
    """One progress bar per pipeline phase, fed by pipeline progress updates."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._tasks: dict[PipelinePhase, TaskID] = {}

    def __enter__(self) -> "ProgressManager":
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()

    def on_progress(self, update: ProgressUpdate) -> None:
        """Pipeline progress callback."""
        task_id = self._tasks.get(update.phase)
        if task_id is None:
            task_id = self.progress.add_task(
                _PHASE_LABELS.get(update.phase, update.phase.value),
                total=update.total or None,
                info="",
            )
            self._tasks[update.phase] = task_id

        self.progress.update(
            task_id,
            completed=update.current,
            total=update.total or None,
            info=update.current_file or "",
        )
