# Copyright (c) Syntropy Systems
"""mutantgen doctor command."""

import typer
from rich.console import Console

from mutantgen.capabilities import release
from mutantgen.config import find_project_dir, load_config
from mutantgen.errors import ConfigurationError
from mutantgen.registry import analyzers, check_providers, generators

console = Console()


def doctor(
    online: bool = typer.Option(
        False,
        "--online",
        help="Also send a test request to the generator",
    ),
) -> None:
    """Check mutantgen setup and diagnose issues.

    Verifies:
    - .mutantgen directory exists
    - configuration is valid and names registered providers
    - the generator has an API key (and answers, with --online)
    - the mutation analyzer can be run
    """
    issues: list[str] = []
    warnings: list[str] = []

    project_dir = find_project_dir()
    if project_dir is None:
        console.print("[yellow]⚠[/yellow] No .mutantgen directory found")
        console.print("  Run [bold]mutantgen init[/bold] to create one")
        warnings.append("Project not initialized")
    else:
        console.print(f"[green]✓[/green] mutantgen directory: {project_dir}")
        runs_dir = project_dir / "runs"
        if runs_dir.exists():
            run_count = len(list(runs_dir.iterdir()))
            console.print(f"[green]✓[/green] Runs directory: {run_count} runs")
        else:
            console.print("[yellow]⚠[/yellow] Runs directory not found")
            warnings.append("Runs directory missing")

    try:
        config = load_config()
        check_providers(config)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration: {e}")
        console.print()
        console.print("[red]Found 1 issue(s)[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]✓[/green] Configuration: generator={config.generator}, "
        f"analyzer={config.analyzer}, storage={config.storage}"
    )

    try:
        generator = generators.create(config.generator, config)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Generator: {e}")
        issues.append(f"Generator misconfigured: {e}")
    else:
        api_key = getattr(generator, "api_key", "present")
        if not api_key:
            console.print(f"[red]✗[/red] Generator {config.generator}: no API key")
            issues.append("Generator API key missing")
        elif online:
            if generator.health_check():
                console.print(f"[green]✓[/green] Generator {config.generator}: reachable")
            else:
                console.print(f"[red]✗[/red] Generator {config.generator}: health check failed")
                issues.append("Generator health check failed")
        else:
            console.print(
                f"[green]✓[/green] Generator {config.generator}: API key set "
                "[dim](use --online to test)[/dim]"
            )
        release(generator)

    analyzer = analyzers.create(config.analyzer, config)
    if analyzer.is_available():
        console.print(f"[green]✓[/green] Analyzer {config.analyzer}: available")
    else:
        console.print(f"[red]✗[/red] Analyzer {config.analyzer}: not available")
        issues.append(f"Analyzer {config.analyzer} not available")

    console.print()
    if issues:
        console.print(f"[red]Found {len(issues)} issue(s)[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        raise typer.Exit(1)
    if warnings:
        console.print(f"[yellow]Found {len(warnings)} warning(s)[/yellow]")
        for warning in warnings:
            console.print(f"  - {warning}")
    else:
        console.print("[green]All checks passed[/green]")
