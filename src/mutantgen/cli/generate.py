# Copyright (c) Syntropy Systems
"""mutantgen generate command."""
from __future__ import annotations

import signal
from pathlib import Path
from threading import Event
from typing import TYPE_CHECKING, Optional

import typer

from mutantgen.batch import check_isolation, run_batch
from mutantgen.cli.common import console, fail, load_cli_config
from mutantgen.config import find_project_dir, get_runs_dir
from mutantgen.controller import validate_loop_parameters
from mutantgen.errors import MutantGenError
from mutantgen.registry import check_providers
from mutantgen.reporting import RunRecorder, render_summary

if TYPE_CHECKING:
    from types import FrameType

    from mutantgen.models import LoopResult


def generate(  # noqa: PLR0913
    files: list[Path] = typer.Argument(
        ...,
        help="Source files to generate tests for",
    ),
    target: Optional[float] = typer.Option(
        None,
        "--target", "-t",
        help="Target mutation score (0-100]",
    ),
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations", "-i",
        help="Maximum rounds per file",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency", "-c",
        help="Files processed in parallel",
    ),
    output_dir: Optional[str] = typer.Option(
        None,
        "--output-dir", "-o",
        help="Directory for generated tests",
    ),
    generator: Optional[str] = typer.Option(
        None,
        "--generator",
        help="Test generator provider",
    ),
    analyzer: Optional[str] = typer.Option(
        None,
        "--analyzer",
        help="Mutation analyzer provider",
    ),
    merge: Optional[bool] = typer.Option(
        None,
        "--merge/--no-merge",
        help="Append improved tests to the previous round's tests",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to a config.yaml",
    ),
    record: bool = typer.Option(
        True,
        "--record/--no-record",
        help="Store a run record under .mutantgen/runs",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Debug logging",
    ),
) -> None:
    """Generate tests and improve them until they reach the target score.

    Exits 0 only when every file succeeded and reached its target.

    Examples:

        mutantgen generate src/calculator.js

        mutantgen generate src/*.js --target 90 --iterations 3 -c 4
    """
    config = load_cli_config(
        config_path,
        verbose=verbose,
        target_score=target,
        max_iterations=iterations,
        concurrency=concurrency,
        output_dir=output_dir,
        generator=generator,
        analyzer=analyzer,
        merge_improvements=merge,
    )
    paths = [str(p) for p in files]
    try:
        validate_loop_parameters(config.target_score, config.max_iterations)
        check_providers(config)
        check_isolation(paths, config)
    except MutantGenError as e:
        fail(e)

    recorder: RunRecorder | None = None
    project_dir = find_project_dir()
    if record and project_dir is not None:
        recorder = RunRecorder(get_runs_dir(project_dir), files=paths, config=config)

    cancel_event = Event()

    def _signal_handler(signum: int, frame: FrameType | None) -> None:
        _ = signum, frame
        console.print("\n[yellow]Cancel requested, finishing current rounds...[/yellow]")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, _signal_handler)

    def _on_result(result: LoopResult) -> None:
        state = result.terminal_state.value if result.terminal_state else "-"
        console.print(
            f"[dim]•[/dim] {result.source_path}: {state}, "
            f"score {result.final_score:.1f} after {result.iterations} round(s)"
        )
        if recorder is not None:
            recorder.record_loop(result)

    try:
        summary = run_batch(paths, config, cancel_event=cancel_event, on_result=_on_result)
    except MutantGenError as e:
        fail(e)
    finally:
        _ = signal.signal(signal.SIGINT, previous_handler)

    console.print()
    render_summary(summary, console)

    if recorder is not None:
        status = "cancelled" if cancel_event.is_set() else "completed"
        recorder.finish(summary, status=status)
        console.print(f"[dim]Run record:[/dim] {recorder.run_dir}")

    if not summary.all_reached_target:
        raise typer.Exit(1)
