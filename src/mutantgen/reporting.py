# Copyright (c) Syntropy Systems
"""Run records on disk and terminal reports."""
from __future__ import annotations

import shutil
import subprocess
import threading
import uuid
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from rich.table import Table

from mutantgen.insights import (
    detect_diminishing_returns,
    failure_breakdown,
    score_progression,
)
from mutantgen.models import BatchSummary, GitInfo, RoundRecord, RunMeta

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.console import Console

    from mutantgen.config import MutantGenConfig
    from mutantgen.models import LoopResult

STATE_STYLES = {
    "TargetReached": "green",
    "BudgetExhausted": "yellow",
    "Fatal": "red",
    "Cancelled": "dim",
}


def utcnow() -> str:
    """Get current UTC time as ISO format string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def new_run_id() -> str:
    """Timestamped, collision-resistant run id."""
    now = datetime.now(timezone.utc)
    return f"{now.strftime('%Y%m%d-%H%M%S')}-{str(uuid.uuid4())[:6]}"


def _git_output(argv: list[str]) -> str | None:
    cmd_path = shutil.which(argv[0])
    if cmd_path is None:
        return None
    try:
        result = subprocess.run(  # noqa: S603
            [cmd_path, *argv[1:]],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def capture_git_info() -> GitInfo | None:
    """Commit, branch and dirty flag of the current repository, if any."""
    commit = _git_output(["git", "rev-parse", "HEAD"])
    if commit is None:
        return None
    short_hash = _git_output(["git", "rev-parse", "--short", "HEAD"])
    branch = _git_output(["git", "rev-parse", "--abbrev-ref", "HEAD"])
    status = _git_output(["git", "status", "--porcelain"])
    if short_hash is None or branch is None or status is None:
        return None
    return GitInfo(commit=commit, short_hash=short_hash, branch=branch, dirty=bool(status))


class RunRecorder:
    """Writes one batch run to ``<runs_dir>/<run_id>/``.

    ``record_loop`` appends a loop's rounds to rounds.jsonl as loops finish,
    so it can be passed straight to ``run_batch`` as ``on_result``.
    ``finish`` writes summary.json and the final meta.json.
    """

    run_id: str
    run_dir: Path
    meta: RunMeta
    _rounds_path: Path
    _meta_path: Path
    _summary_path: Path
    _lock: threading.Lock
    _finished: bool

    def __init__(
        self,
        runs_dir: Path,
        files: Sequence[str] = (),
        config: MutantGenConfig | None = None,
        run_id: str | None = None,
        capture_git: bool = True,  # noqa: FBT001, FBT002
    ) -> None:
        self.run_id = run_id or new_run_id()
        self.run_dir = runs_dir / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.meta = RunMeta(
            id=self.run_id,
            started_at=utcnow(),
            files=list(files),
            # Never persist credentials
            config=(
                config.model_dump(mode="json", exclude={"llm": {"api_key"}})
                if config is not None
                else {}
            ),
            git=capture_git_info() if capture_git else None,
        )
        self._rounds_path = self.run_dir / self.meta.rounds_file
        self._meta_path = self.run_dir / "meta.json"
        self._summary_path = self.run_dir / self.meta.summary_file
        self._lock = threading.Lock()
        self._finished = False
        self._write_meta()

    def _write_meta(self) -> None:
        _ = self._meta_path.write_text(self.meta.model_dump_json(indent=2))

    def record_loop(self, result: LoopResult) -> None:
        """Append every round of a finished loop to rounds.jsonl."""
        lines = []
        for outcome in result.rounds:
            artifact = outcome.test_artifact
            record = RoundRecord(
                source_path=result.source_path,
                round_index=outcome.round_index,
                success=outcome.success,
                score=outcome.score,
                authoritative=outcome.authoritative,
                counts=outcome.counts,
                provenance=artifact.provenance if artifact else None,
                test_path=artifact.path if artifact else None,
                duration_seconds=outcome.duration_seconds,
                failure_cause=outcome.failure_cause,
                failure_kind=outcome.failure_kind,
                timestamp=utcnow(),
            )
            lines.append(record.model_dump_json(exclude_none=True) + "\n")
        with self._lock, self._rounds_path.open("a") as f:
            f.writelines(lines)

    def finish(self, summary: BatchSummary, status: str = "completed") -> None:
        """Write the batch summary and mark the run finished."""
        if self._finished:
            msg = "Run record already finished"
            raise RuntimeError(msg)
        _ = self._summary_path.write_text(summary.model_dump_json(indent=2))
        self.meta.finished_at = utcnow()
        self.meta.status = status
        self._write_meta()
        self._finished = True

    @property
    def finished(self) -> bool:
        """Return whether the run has finished."""
        return self._finished


def read_meta(run_dir: Path) -> RunMeta | None:
    """Read run metadata from meta.json."""
    meta_path = run_dir / "meta.json"
    if not meta_path.exists():
        return None
    return RunMeta.model_validate_json(meta_path.read_text())


def read_summary(run_dir: Path) -> BatchSummary | None:
    """Read the batch summary from summary.json."""
    summary_path = run_dir / "summary.json"
    if not summary_path.exists():
        return None
    return BatchSummary.model_validate_json(summary_path.read_text())


def read_rounds(run_dir: Path) -> list[RoundRecord]:
    """Read rounds.jsonl, tolerating a partial final line."""
    records: list[RoundRecord] = []
    rounds_path = run_dir / "rounds.jsonl"
    if not rounds_path.exists():
        return records

    with rounds_path.open() as f:
        for raw_line in f:
            line = raw_line.strip()
            if line:
                with suppress(ValidationError):
                    records.append(RoundRecord.model_validate_json(line))
    return records


def list_runs(runs_dir: Path) -> list[RunMeta]:
    """Stored runs, newest first."""
    if not runs_dir.is_dir():
        return []
    metas: list[RunMeta] = []
    for run_dir in runs_dir.iterdir():
        if not run_dir.is_dir():
            continue
        with suppress(ValidationError, OSError):
            meta = read_meta(run_dir)
            if meta is not None:
                metas.append(meta)
    metas.sort(key=lambda m: m.started_at, reverse=True)
    return metas


def format_duration(seconds: float | None) -> str:
    """Format duration in seconds to human readable."""
    if seconds is None:
        return "-"

    total = int(seconds)
    if total < 60:
        return f"{total}s"
    if total < 3600:
        m, s = divmod(total, 60)
        return f"{m}m {s}s"
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h}h {m}m"


def format_progression(result: LoopResult) -> str:
    """Scores of the successful rounds, e.g. ``60 → 75 → 85``."""
    scores = score_progression([r for r in result.rounds if r.success])
    return " → ".join(f"{s:.0f}" for s in scores) or "-"


def summary_table(summary: BatchSummary) -> Table:
    """Per-file table for a batch."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("State")
    table.add_column("Score", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Rounds", justify="right")
    table.add_column("Progression")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="dim")

    for result in summary.results:
        state = result.terminal_state.value if result.terminal_state else "-"
        style = STATE_STYLES.get(state, "white")
        table.add_row(
            result.source_path,
            f"[{style}]{state}[/{style}]",
            f"{result.final_score:.1f}",
            f"{result.target_score:.0f}",
            f"{result.iterations}/{result.max_iterations}",
            format_progression(result),
            format_duration(result.duration_seconds),
            result.error or "",
        )
    return table


def render_summary(summary: BatchSummary, console: Console) -> None:
    """Print a batch summary."""
    console.print(summary_table(summary))

    mean = "n/a" if summary.no_successful_runs else f"{summary.mean_score:.1f}"
    console.print(
        f"[bold]{summary.total_files}[/bold] file(s): "
        f"[green]{summary.successful} successful[/green], "
        f"[red]{summary.failed} failed[/red], "
        f"{summary.target_reached} reached target, "
        f"mean score {mean}, "
        f"{summary.total_iterations} round(s) in {format_duration(summary.duration_seconds)}"
    )

    breakdown = failure_breakdown(summary.results)
    if breakdown:
        console.print("[dim]Failures:[/dim]")
        for item in breakdown:
            console.print(f"  {item.category}: {item.count} ({item.percentage:.0f}%)")

    stalled = [
        r.source_path for r in summary.results
        if detect_diminishing_returns([o for o in r.rounds if o.success])
    ]
    if stalled:
        console.print("[dim]Diminishing returns (gains shrinking round over round):[/dim]")
        for path in stalled:
            console.print(f"  {path}")
