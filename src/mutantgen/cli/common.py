# Copyright (c) Syntropy Systems
"""Helpers shared by the CLI commands."""
from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console

from mutantgen.config import MutantGenConfig, load_config
from mutantgen.errors import MutantGenError
from mutantgen.log import configure_logging

console = Console()


def fail(message: object) -> NoReturn:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def load_cli_config(
    config_path: Path | None = None,
    verbose: bool = False,  # noqa: FBT001, FBT002
    **overrides: object,
) -> MutantGenConfig:
    """Load config, apply flag overrides and configure logging.

    Exits with status 1 on invalid configuration.
    """
    try:
        config = load_config(config_path=config_path).with_overrides(**overrides)
    except MutantGenError as e:
        fail(e)
    level = "DEBUG" if verbose else config.logging.level
    _ = configure_logging(level=level, log_file=config.logging.file)
    return config
