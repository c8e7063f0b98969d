# Copyright (c) Syntropy Systems
"""mutantgen init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from mutantgen.config import PROJECT_DIR_NAME, MutantGenConfig

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Initialize a new mutantgen project.

    Creates a .mutantgen directory with a default configuration and a
    directory for run records.
    """
    target = path.resolve()
    project_dir = target / PROJECT_DIR_NAME

    if project_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {project_dir}")
        return

    project_dir.mkdir(parents=True)
    runs_dir = project_dir / "runs"
    runs_dir.mkdir()

    # API keys stay in the environment, not in the config file
    config = MutantGenConfig().model_dump(mode="json", exclude_none=True)

    config_path = project_dir / "config.yaml"
    with config_path.open("w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Initialized mutantgen project:[/green] {project_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    console.print(f"  [dim]runs:[/dim] {runs_dir}")
