# Copyright (c) Syntropy Systems
"""mutantgen report command."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from mutantgen.cli.common import console, fail
from mutantgen.config import get_runs_dir, require_project_dir
from mutantgen.insights import optimization_suggestions
from mutantgen.reporting import list_runs, read_meta, read_rounds, read_summary, render_summary

if TYPE_CHECKING:
    from pathlib import Path

STATUS_STYLES = {
    "running": "blue",
    "completed": "green",
    "cancelled": "yellow",
    "failed": "red",
}


def report(
    run_id: Optional[str] = typer.Argument(
        None,
        help="Run ID (or unique prefix) to show; lists runs when omitted",
    ),
    rounds: bool = typer.Option(
        False,
        "--rounds", "-r",
        help="Show every round",
    ),
    last: int = typer.Option(
        20,
        "--last", "-n",
        help="Number of runs to list",
    ),
) -> None:
    """List stored runs or show one run's report."""
    try:
        project_dir = require_project_dir()
    except RuntimeError as e:
        fail(e)
    runs_dir = get_runs_dir(project_dir)

    if run_id is None:
        _list(runs_dir, last)
        return

    matches = [p for p in runs_dir.glob(f"{run_id}*") if p.is_dir()] if runs_dir.is_dir() else []
    if not matches:
        fail(f"Run not found: {run_id}")
    if len(matches) > 1:
        fail(f"Run ID prefix '{run_id}' is ambiguous ({len(matches)} matches)")
    run_dir = matches[0]

    try:
        meta = read_meta(run_dir)
        summary = read_summary(run_dir)
    except ValidationError as e:
        fail(f"Corrupt run record in {run_dir}: {e}")

    if meta is not None:
        style = STATUS_STYLES.get(meta.status, "white")
        console.print(f"[bold]Run:[/bold] {meta.id}")
        console.print(f"[bold]Status:[/bold] [{style}]{meta.status}[/{style}]")
        console.print(f"[bold]Started:[/bold] {meta.started_at}")
        if meta.finished_at:
            console.print(f"[bold]Finished:[/bold] {meta.finished_at}")
        if meta.git:
            dirty = " (dirty)" if meta.git.dirty else ""
            console.print(f"[bold]Git:[/bold] {meta.git.branch}@{meta.git.short_hash}{dirty}")
        console.print()

    if summary is None:
        console.print("[dim]No summary recorded (run did not finish)[/dim]")
    else:
        render_summary(summary, console)
        for suggestion in optimization_suggestions(summary):
            console.print(f"[yellow]•[/yellow] {suggestion.title}: {suggestion.description}")

    if rounds:
        table = Table(show_header=True, header_style="bold")
        table.add_column("File")
        table.add_column("Round", justify="right")
        table.add_column("Kind")
        table.add_column("Score", justify="right")
        table.add_column("Survived", justify="right")
        table.add_column("Failure", style="dim")
        for record in read_rounds(run_dir):
            score = f"{record.score:.1f}" if record.success else "[red]failed[/red]"
            table.add_row(
                record.source_path,
                str(record.round_index),
                record.provenance or "-",
                score,
                str(record.counts.survived),
                record.failure_cause or "",
            )
        console.print()
        console.print(table)


def _list(runs_dir: Path, last: int) -> None:
    metas = list_runs(runs_dir)[:last]
    if not metas:
        console.print("[dim]No runs found[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Files", justify="right")

    for meta in metas:
        style = STATUS_STYLES.get(meta.status, "white")
        table.add_row(
            meta.id,
            meta.started_at,
            f"[{style}]{meta.status}[/{style}]",
            str(len(meta.files)),
        )
    console.print(table)
