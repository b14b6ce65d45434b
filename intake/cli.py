"""
Intake CLI - Typer Commands

  intake ingest PATH...   stream local files through the ingestion pipeline
  intake clone URL        request a repository fetch and show the recovery plan
  intake policy           print the recovery policy table
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from intake.config import IntakeConfig, load_config
from intake.error_center import ErrorCenter
from intake.exceptions import ConfigError
from intake.files import format_file_size
from intake.ingestion import IngestionPipeline
from intake.notifications import NotificationKind
from intake.operations import Operation, OperationTracker, OperationType
from intake.recovery import RECOVERY_POLICY

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="intake",
    help="Track, stream and recover source file ingestion",
    add_completion=False,
    no_args_is_help=True,
)

_KIND_STYLES = {
    NotificationKind.ERROR: "red",
    NotificationKind.WARNING: "yellow",
    NotificationKind.INFO: "cyan",
    NotificationKind.SUCCESS: "green",
}


def _load(config_file: Path | None, chunk_size: int | None = None) -> IntakeConfig:
    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
    if chunk_size:
        config.chunk_size = chunk_size
    return config


def _build(config: IntakeConfig) -> tuple[OperationTracker, ErrorCenter, IngestionPipeline]:
    tracker = OperationTracker()
    center = ErrorCenter(tracker, config=config)
    return tracker, center, IngestionPipeline(config, tracker, center)


def show_notifications(center: ErrorCenter) -> None:
    """Print every live notification, oldest first."""
    for notification in center.notifications:
        style = _KIND_STYLES[notification.kind]
        console.print(f"[{style}]{notification.title}:[/{style}] {notification.message}")


def _follow_upload(progress: Progress, task: TaskID, operations: tuple[Operation, ...]) -> None:
    uploads = [op for op in operations if op.type == OperationType.FILE_UPLOAD]
    if uploads:
        current = uploads[-1]
        progress.update(task, completed=current.progress, description=current.title)


@app.command()
def ingest(
    paths: list[Path] = typer.Argument(..., help="Files to ingest"),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Chunk size in bytes"),
    config_file: Path | None = typer.Option(None, "--config", help="Path to config.json"),
) -> None:
    """Ingest local source files."""
    config = _load(config_file, chunk_size)
    tracker, center, pipeline = _build(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Preparing", total=100)
        tracker.add_listener(lambda ops: _follow_upload(progress, task, ops))
        project = asyncio.run(pipeline.ingest(paths))

    show_notifications(center)

    if project is None:
        raise typer.Exit(1)

    table = Table(title=project.name)
    table.add_column("File", style="cyan")
    table.add_column("Language")
    table.add_column("Size", justify="right")
    for source in project.files:
        table.add_row(source.file_name, source.language, format_file_size(source.size))
    console.print(table)
    console.print(
        f"[dim]{len(project.files)} file(s), {format_file_size(project.total_size)}, "
        f"languages: {', '.join(project.languages)}[/dim]"
    )


@app.command()
def clone(
    url: str = typer.Argument(..., help="Repository URL"),
    config_file: Path | None = typer.Option(None, "--config", help="Path to config.json"),
) -> None:
    """Request a repository fetch."""
    config = _load(config_file)
    _, center, pipeline = _build(config)

    app_error = asyncio.run(pipeline.clone(url))
    show_notifications(center)

    action = app_error.recovery_action
    if action is not None:
        lines = [f"[bold]{action.kind.value}[/bold]: {action.message}"]
        if action.fallback_strategy:
            lines.append(f"Fallback: {action.fallback_strategy}")
        if action.max_retries:
            lines.append(f"Retries: {action.max_retries} every {action.delay} ms")
        console.print(Panel("\n".join(lines), title="Recovery plan"))
    raise typer.Exit(1)


@app.command()
def policy() -> None:
    """Print the recovery policy table."""
    table = Table(title="Recovery policy")
    table.add_column("Category", style="cyan")
    table.add_column("Subtype")
    table.add_column("Action", style="bold")
    table.add_column("Retries", justify="right")
    table.add_column("Delay", justify="right")
    table.add_column("Fallback")

    for (category, subtype), rule in RECOVERY_POLICY.items():
        if callable(rule.delay):
            delay = "retry_after"
        elif rule.delay is not None:
            delay = f"{rule.delay} ms"
        else:
            delay = "-"
        table.add_row(
            category.value,
            subtype,
            rule.kind.value,
            str(rule.max_retries) if rule.max_retries is not None else "-",
            delay,
            rule.fallback_strategy or "-",
        )
    console.print(table)


def main() -> None:
    """Console script entry point."""
    app()
