"""Rich output for the claimrunner CLI.

Holds the shared console, the Rich progress reporter used while a batch
runs, and the listener that echoes job lifecycle signals to the terminal.
"""

from __future__ import annotations

from rich.console import Console
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

from claimrunner.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from claimrunner.interfaces import JobId

# Commands print through this console; quiet mode is handled by the callers.
console = Console()


def create_batch_progress(console_instance: Console | None = None) -> Progress:
    """Create the progress bar shown while a batch runs (not yet started)."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=30),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        console=console_instance or console,
        transient=False,
    )


class RichProgressReporter:
    """ProgressReporter backed by a Rich progress bar.

    A fresh bar is created on every ``start`` so one reporter can serve
    several consecutive batches.
    """

    def __init__(self, console_instance: Console | None = None) -> None:
        self._console = console_instance or console
        self._progress: Progress | None = None
        self._task: TaskID | None = None
        self.current = 0

    def start(self, total: int, description: str) -> None:
        self.finish()
        self.current = 0
        self._progress = create_batch_progress(self._console)
        self._task = self._progress.add_task(description, total=total)
        self._progress.start()

    def tick(self) -> None:
        self.current += 1
        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task)

    def finish(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None


def truncate(text: str, limit: int = TRUNCATE_ERROR_MESSAGE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class ConsoleJobListener:
    """Echoes job lifecycle signals to the console.

    Started/completed lines are printed only when ``verbose`` is set;
    failures are always printed.
    """

    def __init__(self, console_instance: Console | None = None, *, verbose: bool = False) -> None:
        self._console = console_instance or console
        self.verbose = verbose

    def on_start(self, job_id: JobId) -> None:
        if self.verbose:
            self._console.print(f"Started processing job {job_id}")

    def on_complete(self, job_id: JobId) -> None:
        if self.verbose:
            self._console.print(f"Completed processing job {job_id}")

    def on_fail(self, job_id: JobId, error: BaseException) -> None:
        self._console.print(
            f"[red]Error processing job {job_id}:[/red] {truncate(str(error))}"
        )


def build_summary_table(
    batches: int,
    processed: int,
    failed: int,
    elapsed_seconds: float,
) -> Table:
    """Summary shown at the end of ``claimrunner run``."""
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Batches", str(batches))
    table.add_row("Jobs processed", str(processed))
    table.add_row("Jobs failed", f"[red]{failed}[/red]" if failed else "0")
    table.add_row("Elapsed", format_duration(elapsed_seconds))
    return table


def format_duration(seconds: float | None) -> str:
    """Format seconds as e.g. "5.2s", "3m 12s" or "1h 30m"."""
    if seconds is None:
        return "N/A"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"


__all__ = [
    "ConsoleJobListener",
    "RichProgressReporter",
    "build_summary_table",
    "console",
    "create_batch_progress",
    "format_duration",
    "truncate",
]
