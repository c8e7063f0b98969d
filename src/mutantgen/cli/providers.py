# Copyright (c) Syntropy Systems
"""mutantgen providers command."""

import typer
from rich.console import Console
from rich.table import Table

from mutantgen.config import load_config
from mutantgen.errors import ConfigurationError
from mutantgen.registry import analyzers, generators, storages

console = Console()


def providers() -> None:
    """List registered providers. The configured ones are marked."""
    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    selected = {
        "generator": config.generator.lower(),
        "analyzer": config.analyzer.lower(),
        "storage": config.storage.lower(),
    }

    table = Table(show_header=True, header_style="bold")
    table.add_column("Kind")
    table.add_column("Name")
    table.add_column("Selected", justify="center")

    for registry in (generators, analyzers, storages):
        for name in registry.names():
            mark = "[green]✓[/green]" if selected[registry.kind] == name else ""
            table.add_row(registry.kind, name, mark)

    console.print(table)
