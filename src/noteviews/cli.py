"""Command line interface for NoteViews."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from noteviews.config import DEFAULT_FIELD, TrackerConfig
from noteviews.errors import TrackerError
from noteviews.frontmatter.store import FrontmatterStore
from noteviews.models import FailedOperation, ProcessResult
from noteviews.reporting.export import EXPORT_FORMATS, export_records
from noteviews.reporting.stats import AccessStats, collect_vault_records
from noteviews.tracking.batch_queue import MAX_RETRIES
from noteviews.tracking.tracker import ViewTracker
from noteviews.utils.files import document_ref_for, iter_note_paths
from noteviews.web.app import app as web_app


console = Console()
app = typer.Typer(help="NoteViews - count how often vault notes are opened")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_config(
    vault: Optional[Path], config_file: Optional[Path], field: Optional[str]
) -> TrackerConfig:
    if config_file is not None:
        config = TrackerConfig.from_toml(config_file, vault_path=vault, counter_field=field)
    else:
        config = TrackerConfig(vault_path=vault, counter_field=field or DEFAULT_FIELD)
    config.vault_path = config.resolve_vault_path(Path.cwd())
    if not config.vault_path.is_dir():
        raise typer.BadParameter(f"Vault not found: {config.vault_path}")
    config.validate()
    return config


def _fail(exc: TrackerError) -> None:
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def _format_time(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


VaultOption = typer.Option(
    None, "--vault", help="Vault directory (default: $NOTEVIEWS_VAULT or cwd)"
)
ConfigOption = typer.Option(None, "--config", help="TOML file with a [noteviews] table")
FieldOption = typer.Option(None, "--field", help="Header field holding the counter")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


async def _record_opens(
    config: TrackerConfig, notes: List[Path]
) -> tuple[int, List[ProcessResult]]:
    tracker = ViewTracker(config)
    results: List[ProcessResult] = []
    tracker.queue.on_flush_complete(results.append)
    await tracker.start()
    counted = 0
    for note in notes:
        if tracker.notify_access(document_ref_for(config.vault_path, note)):
            counted += 1
    await tracker.stop()
    return counted, results


def _dropped(results: List[ProcessResult]) -> List[FailedOperation]:
    """Failures of operations that ran out of retries."""
    attempts = Counter(id(f.operation) for result in results for f in result.failures)
    last: dict[int, FailedOperation] = {}
    for result in results:
        for failure in result.failures:
            last[id(failure.operation)] = failure
    return [failure for key, failure in last.items() if attempts[key] > MAX_RETRIES]


@app.command("open")
def open_notes(
    notes: List[Path] = typer.Argument(
        ..., help="Notes (or folders) that were opened.", resolve_path=True
    ),
    vault: Optional[Path] = VaultOption,
    config_file: Optional[Path] = ConfigOption,
    field: Optional[str] = FieldOption,
    verbose: bool = VerboseOption,
) -> None:
    """Record an access for each note and write the counters."""
    _setup_logging(verbose)
    try:
        config = _load_config(vault, config_file, field)
        paths = list(iter_note_paths(notes))
        if not paths:
            console.print("[yellow]No notes found.[/yellow]")
            return
        counted, results = asyncio.run(_record_opens(config, paths))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    except TrackerError as exc:
        _fail(exc)
        return

    written = sum(result.success_count for result in results)
    console.print(f"Counted: {counted}, written: {written}, skipped: {len(paths) - counted}")
    dropped = _dropped(results)
    for failure in dropped:
        console.print(f"[red]Failed:[/red] {failure.operation.path}: {failure.error_message}")
    if dropped:
        raise typer.Exit(code=1)


@app.command()
def count(
    note: Path = typer.Argument(..., help="Note to inspect", resolve_path=True),
    vault: Optional[Path] = VaultOption,
    config_file: Optional[Path] = ConfigOption,
    field: Optional[str] = FieldOption,
) -> None:
    """Show the stored counter of a note."""
    try:
        config = _load_config(vault, config_file, field)
        store = FrontmatterStore(config.vault_path)
        document = document_ref_for(config.vault_path, note)
        value = asyncio.run(store.read_field(document, config.counter_field))
    except (FileNotFoundError, ValueError):
        raise typer.BadParameter(f"Note not found: {note}")
    except TrackerError as exc:
        _fail(exc)
        return
    console.print(f"{document.path}: {value}")


@app.command()
def stats(
    vault: Optional[Path] = VaultOption,
    config_file: Optional[Path] = ConfigOption,
    field: Optional[str] = FieldOption,
    top: int = typer.Option(10, help="Number of notes to list"),
    verbose: bool = VerboseOption,
) -> None:
    """Summarize counters stored across the vault."""
    _setup_logging(verbose)
    try:
        config = _load_config(vault, config_file, field)
        store = FrontmatterStore(config.vault_path)
        records = asyncio.run(collect_vault_records(store, config.counter_field))
    except TrackerError as exc:
        _fail(exc)
        return

    if not records:
        console.print("[yellow]No counted notes found.[/yellow]")
        return

    summary = AccessStats(records).aggregate()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Count", justify="right")
    table.add_column("Note")
    table.add_column("Last modified")
    for record in AccessStats(records).most_frequent(top):
        table.add_row(str(record.access_count), record.path, _format_time(record.last_seen))
    console.print(table)
    console.print(
        f"Notes: {summary.total_files}, accesses: {summary.total_accesses}, "
        f"average: {summary.average_accesses_per_file:.1f}"
    )
    ranges = ", ".join(f"{label}: {n}" for label, n in summary.access_ranges.items())
    console.print(f"Ranges: {ranges}")


@app.command()
def export(
    vault: Optional[Path] = VaultOption,
    config_file: Optional[Path] = ConfigOption,
    field: Optional[str] = FieldOption,
    fmt: str = typer.Option("csv", "--format", help="csv, json or markdown"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to a file"),
) -> None:
    """Export stored counters."""
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Unsupported format: {fmt}")
    try:
        config = _load_config(vault, config_file, field)
        store = FrontmatterStore(config.vault_path)
        records = asyncio.run(collect_vault_records(store, config.counter_field))
    except TrackerError as exc:
        _fail(exc)
        return

    records.sort(key=lambda record: record.access_count, reverse=True)
    text = export_records(records, fmt)
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"Exported {len(records)} notes to [bold]{output}[/bold]")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    vault: Optional[Path] = VaultOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Start the tracking API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras: pip install 'noteviews[web]'"
        ) from exc

    try:
        config = _load_config(vault, config_file, None)
    except TrackerError as exc:
        _fail(exc)
        return

    web_app.state.config = config
    console.print(f"Starting API on http://{host}:{port} (vault: {config.vault_path})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
