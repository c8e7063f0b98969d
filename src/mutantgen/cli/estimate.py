# Copyright (c) Syntropy Systems
"""mutantgen estimate command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from mutantgen.adapters.llm import build_generate_prompt
from mutantgen.capabilities import GenerationContext, release
from mutantgen.cli.common import console, fail, load_cli_config
from mutantgen.errors import MutantGenError
from mutantgen.registry import generators, storages


def estimate(
    files: list[Path] = typer.Argument(
        ...,
        help="Source files to estimate",
    ),
    generator: Optional[str] = typer.Option(
        None,
        "--generator",
        help="Test generator provider",
    ),
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations", "-i",
        help="Rounds to budget for per file",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to a config.yaml",
    ),
) -> None:
    """Estimate generation cost per file.

    The per-round figure covers the initial prompt; the budget column assumes
    every round costs about the same.
    """
    config = load_cli_config(config_path, generator=generator, max_iterations=iterations)

    try:
        provider = generators.create(config.generator, config)
        storage = storages.create(config.storage, config)
    except MutantGenError as e:
        fail(e)

    table = Table(show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("Input tokens", justify="right")
    table.add_column("Output tokens", justify="right")
    table.add_column("Per round", justify="right")
    table.add_column(f"x{config.max_iterations} rounds", justify="right")

    grand_total = 0.0
    currency = "USD"
    notes: set[str] = set()
    for path in files:
        try:
            source = storage.read(str(path))
        except MutantGenError as e:
            console.print(f"[yellow]⚠[/yellow] Skipping {path}: {e}")
            continue
        prompt = build_generate_prompt(source, path.name, GenerationContext())
        cost = provider.estimate_cost(prompt)
        budget_total = cost.total_cost * config.max_iterations
        grand_total += budget_total
        currency = cost.currency
        if cost.note:
            notes.add(cost.note)
        table.add_row(
            str(path),
            str(cost.input_tokens),
            str(cost.output_tokens),
            f"{cost.total_cost:.4f}",
            f"{budget_total:.4f}",
        )

    release(provider)
    console.print(table)
    console.print(f"Worst case total: [bold]{grand_total:.4f} {currency}[/bold]")
    for note in sorted(notes):
        console.print(f"[dim]{note}[/dim]")
