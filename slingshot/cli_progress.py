"""Console rendering and progress helpers for slingshot CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table

from .models import FileRecord, FileStatus, UploadStatus


console = Console()

STATUS_COLORS = {
    FileStatus.DONE: "green",
    FileStatus.REJECTED: "yellow",
    FileStatus.FAILED: "red",
    FileStatus.ABORTED: "magenta",
}


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


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
        title="[bold green]slingshot-up[/bold green]",
        subtitle="[dim]signed-url uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_summary(records: List[FileRecord]) -> None:
    """Render the final per-file table."""
    table = Table(title="Upload results", show_lines=False)
    table.add_column("File", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Key / Error", style="dim")

    for record in records:
        color = STATUS_COLORS.get(record.status, "white")
        detail = record.key if record.status is FileStatus.DONE else (record.error or "-")
        table.add_row(
            record.name,
            _human_size(record.size),
            f"[{color}]{record.status.value}[/{color}]",
            detail or "-",
        )
    console.print(table)


class BatchProgressDisplay:
    """Store-driven console display for a slingshot batch."""

    def __init__(self):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[state]}", justify="left"),
            expand=False,
            console=console,
        )
        self._tasks: Dict[str, TaskID] = {}
        self._finished: set[str] = set()
        self._live: Optional[Live] = None

    def start(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _emit_timeline(self, record: FileRecord) -> None:
        stamp = time.strftime("%H:%M:%S")
        color = STATUS_COLORS.get(record.status, "white")
        error_label = f" cause={record.error}" if record.error else ""
        console.print(
            f"[dim]{stamp}[/dim] [{color}]{record.status.value.upper():<8}[/{color}] "
            f"{record.name} {_human_size(record.size)}{error_label}"
        )

    def on_file(self, record: FileRecord) -> None:
        task_id = self._tasks.get(record.id)
        if task_id is None:
            self.start()
            task_id = self._progress.add_task(
                "upload",
                label=record.name[:60],
                total=100,
                completed=0,
                state=record.status.value,
            )
            self._tasks[record.id] = task_id

        self._progress.update(
            task_id,
            completed=record.progress or (100 if record.is_terminal else 0),
            state=record.status.value,
        )

        if record.is_terminal and record.id not in self._finished:
            self._finished.add(record.id)
            self._emit_timeline(record)

    def on_status(self, status: UploadStatus) -> None:
        if status in (UploadStatus.DONE, UploadStatus.FAILED):
            self.stop()

    def on_finish(self, records: List[FileRecord]) -> None:
        self.stop()
        render_summary(records)
        done = sum(1 for r in records if r.status is FileStatus.DONE)
        console.print(f"[bold]Finished[/bold] uploaded={done} total={len(records)} failed={len(records) - done}")
