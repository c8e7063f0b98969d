# Copyright (c) Syntropy Systems
"""Pydantic models for round, loop and batch results."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, model_validator
from typing_extensions import Self

from .artifacts import MutantRecord, MutantStatus, TestArtifact
from .base import FrozenModel, MutantGenBaseModel


class MutantCounts(FrozenModel):
    """Per-status mutant counts for one analysis."""

    total: int = Field(default=0, ge=0)
    killed: int = Field(default=0, ge=0)
    survived: int = Field(default=0, ge=0)
    timed_out: int = Field(default=0, ge=0)
    no_coverage: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_total(self) -> Self:
        parts = self.killed + self.survived + self.timed_out + self.no_coverage
        if parts != self.total:
            msg = f"Mutant counts do not add up: {parts} != total {self.total}"
            raise ValueError(msg)
        return self


class AnalysisSummary(FrozenModel):
    """Derived summary of one raw analysis result."""

    score: float = Field(ge=0.0, le=100.0)
    authoritative: bool
    counts: MutantCounts
    mutants: tuple[MutantRecord, ...] = ()


class RoundOutcome(FrozenModel):
    """Result of one generate-or-improve, persist, analyze cycle."""

    round_index: int = Field(ge=1)
    test_artifact: TestArtifact | None = None
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    authoritative: bool = False
    counts: MutantCounts = Field(default_factory=MutantCounts)
    mutants: tuple[MutantRecord, ...] = ()
    duration_seconds: float = 0.0
    success: bool
    failure_cause: str | None = None
    failure_kind: str | None = None

    @property
    def survived_mutants(self) -> list[MutantRecord]:
        """Survived mutants in analysis order."""
        return [m for m in self.mutants if m.status == MutantStatus.SURVIVED]


class TerminalState(str, Enum):
    """How a loop ended."""

    TARGET_REACHED = "TargetReached"
    BUDGET_EXHAUSTED = "BudgetExhausted"
    FATAL = "Fatal"
    CANCELLED = "Cancelled"


class LoopResult(MutantGenBaseModel):
    """Chronological record of every round run for one source file.

    Rounds can only be appended while the result is open. Once ``finish``
    has been called the result is terminal and rejects further rounds.
    """

    source_path: str
    test_path: str
    target_score: float
    max_iterations: int = Field(ge=1)
    rounds: list[RoundOutcome] = Field(default_factory=list)
    final_score: float = 0.0
    target_reached: bool = False
    iterations: int = 0
    duration_seconds: float = 0.0
    success: bool = False
    terminal_state: TerminalState | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Return whether the loop has ended."""
        return self.terminal_state is not None

    @property
    def last_round(self) -> RoundOutcome | None:
        """Most recent round, if any."""
        return self.rounds[-1] if self.rounds else None

    def append_round(self, outcome: RoundOutcome) -> None:
        """Append the next round in chronological order."""
        if self.is_terminal:
            msg = "Cannot append a round to a finished loop"
            raise RuntimeError(msg)
        if len(self.rounds) >= self.max_iterations:
            msg = f"Iteration budget of {self.max_iterations} already used"
            raise RuntimeError(msg)
        expected = len(self.rounds) + 1
        if outcome.round_index != expected:
            msg = f"Expected round {expected}, got round {outcome.round_index}"
            raise RuntimeError(msg)
        self.rounds.append(outcome)

    def finish(
        self,
        state: TerminalState,
        duration_seconds: float,
        error: str | None = None,
    ) -> None:
        """Mark the loop terminal and derive the summary fields."""
        if self.is_terminal:
            msg = "Loop already finished"
            raise RuntimeError(msg)

        last = self.last_round
        self.terminal_state = state
        self.iterations = len(self.rounds)
        self.final_score = last.score if last is not None else 0.0
        self.target_reached = state == TerminalState.TARGET_REACHED
        self.duration_seconds = duration_seconds

        any_success = any(r.success for r in self.rounds)
        if state in (TerminalState.FATAL, TerminalState.CANCELLED):
            self.success = False
        else:
            self.success = any_success

        if error is None and not self.success and last is not None:
            error = last.failure_cause
        self.error = error


class BatchSummary(MutantGenBaseModel):
    """Aggregate of loop results across a batch of files."""

    total_files: int = 0
    successful: int = 0
    failed: int = 0
    mean_score: float = 0.0
    no_successful_runs: bool = True
    target_reached: int = 0
    total_iterations: int = 0
    duration_seconds: float = 0.0
    results: list[LoopResult] = Field(default_factory=list)

    @property
    def all_reached_target(self) -> bool:
        """True when every loop succeeded and reached its target."""
        return bool(self.results) and all(
            r.success and r.target_reached for r in self.results
        )
