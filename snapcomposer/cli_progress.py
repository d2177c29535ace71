"""Console rendering and progress helpers for the snapcomposer CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .utils.events import Outcome, UploadEvent

console = Console()

_OUTCOME_STYLE = {
    Outcome.STARTED: "cyan",
    Outcome.SUCCEEDED: "green",
    Outcome.FAILED: "red",
    Outcome.SKIPPED: "yellow",
}


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]snapcomposer[/bold green]",
        subtitle="[dim]composer CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_event(event: UploadEvent) -> None:
    style = _OUTCOME_STYLE.get(event.outcome, "white")
    detail = f" [dim]{event.detail}[/dim]" if event.detail else ""
    console.print(f"  [{style}]{event.outcome:>9}[/{style}] {event.phase}{detail}")


class VideoUploadProgress:
    """Percent-based progress bar for one video upload."""

    def __init__(self, file_path: Path):
        self.filename = Path(file_path).name
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            expand=False,
            console=console,
        )
        self._task_id: Optional[TaskID] = None

    def start(self) -> None:
        if self._task_id is not None:
            return
        self._progress.start()
        self._task_id = self._progress.add_task("upload", filename=self.filename[:60], total=100)

    def update(self, percent: int) -> None:
        if self._task_id is None:
            self.start()
        self._progress.update(self._task_id, completed=percent)

    def complete(self, success: bool = True, error: Optional[str] = None) -> None:
        if self._task_id is not None:
            self._progress.stop()
            self._task_id = None

        if success:
            console.print(f"[green]Uploaded:[/green] {self.filename}")
            return

        suffix = f" - {error}" if error else ""
        console.print(f"[red]Failed:[/red] {self.filename}{suffix}")

    def get_callback(self):
        def callback(percent: int) -> None:
            self.update(percent)

        return callback
