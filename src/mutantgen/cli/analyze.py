# Copyright (c) Syntropy Systems
"""mutantgen analyze command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from mutantgen.capabilities import AnalysisOptions
from mutantgen.cli.common import console, fail, load_cli_config
from mutantgen.errors import MutantGenError
from mutantgen.insights import recommendations
from mutantgen.models import RoundOutcome
from mutantgen.registry import analyzers

PRIORITY_STYLES = {"high": "red", "medium": "yellow", "low": "dim"}


def analyze(
    source: Path = typer.Argument(
        ...,
        help="Source file to mutate",
    ),
    test: Path = typer.Argument(
        ...,
        help="Test file to score",
    ),
    analyzer: Optional[str] = typer.Option(
        None,
        "--analyzer",
        help="Mutation analyzer provider",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to a config.yaml",
    ),
    show_mutants: int = typer.Option(
        10,
        "--show", "-n",
        help="Number of survived mutants to list",
    ),
) -> None:
    """Run mutation analysis once for an existing test file."""
    config = load_cli_config(config_path, analyzer=analyzer)

    try:
        engine = analyzers.create(config.analyzer, config)
        raw = engine.analyze(
            str(source),
            str(test),
            AnalysisOptions(
                timeout_seconds=config.analysis.timeout_seconds,
                mutators=frozenset(config.analysis.mutators),
            ),
        )
        summary = engine.summarize(raw)
    except MutantGenError as e:
        fail(e)

    counts = summary.counts
    table = Table(show_header=True, header_style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Killed", justify="right")
    table.add_column("Survived", justify="right")
    table.add_column("Timed out", justify="right")
    table.add_column("No coverage", justify="right")
    table.add_column("Total", justify="right")
    score = f"{summary.score:.1f}" if summary.authoritative else "[dim]n/a[/dim]"
    table.add_row(
        score,
        str(counts.killed),
        str(counts.survived),
        str(counts.timed_out),
        str(counts.no_coverage),
        str(counts.total),
    )
    console.print(table)

    outcome = RoundOutcome(
        round_index=1,
        score=summary.score,
        authoritative=summary.authoritative,
        counts=summary.counts,
        mutants=summary.mutants,
        success=True,
    )

    survived = outcome.survived_mutants
    if survived and show_mutants > 0:
        console.print("\n[bold]Survived mutants[/bold]")
        for mutant in survived[:show_mutants]:
            console.print(
                f"  {mutant.mutator} at line {mutant.location.start_line}: "
                f"[dim]{mutant.replacement}[/dim]"
            )
        if len(survived) > show_mutants:
            console.print(f"  [dim]... and {len(survived) - show_mutants} more[/dim]")

    recs = recommendations(outcome)
    if recs:
        console.print("\n[bold]Recommendations[/bold]")
        for rec in recs:
            style = PRIORITY_STYLES[rec.priority]
            console.print(f"  [{style}]{rec.priority}[/{style}] {rec.title}: {rec.description}")
