# Copyright (c) Syntropy Systems
"""Feedback loop controller.

Drives rounds for one source file until the target score is reached, the
iteration budget runs out, rounds keep failing, or the caller cancels::

    Idle -> Generating -> Analyzing -> Deciding
    Deciding -> Improving -> Analyzing -> Deciding ...
    Deciding -> TargetReached | BudgetExhausted | Fatal
    (any round boundary) -> Cancelled
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from mutantgen.errors import ConfigurationError
from mutantgen.executor import RoundExecutor, output_path_for
from mutantgen.models import LoopResult, TerminalState

if TYPE_CHECKING:
    import threading

    from mutantgen.capabilities import Capabilities
    from mutantgen.config import MutantGenConfig
    from mutantgen.models import MutantRecord, RoundOutcome, SourceArtifact, TestArtifact

CANCELLED_ERROR = "cancelled"


class LoopState(str, Enum):
    """Controller states."""

    IDLE = "Idle"
    GENERATING = "Generating"
    ANALYZING = "Analyzing"
    DECIDING = "Deciding"
    IMPROVING = "Improving"
    TARGET_REACHED = "TargetReached"
    BUDGET_EXHAUSTED = "BudgetExhausted"
    FATAL = "Fatal"
    CANCELLED = "Cancelled"


_TERMINAL = {
    LoopState.TARGET_REACHED: TerminalState.TARGET_REACHED,
    LoopState.BUDGET_EXHAUSTED: TerminalState.BUDGET_EXHAUSTED,
    LoopState.FATAL: TerminalState.FATAL,
    LoopState.CANCELLED: TerminalState.CANCELLED,
}


def validate_loop_parameters(target_score: float, max_iterations: int) -> None:
    """Raise ConfigurationError for an unreachable target or an empty budget."""
    if not 0 < target_score <= 100:
        msg = f"Target score must be in (0, 100], got {target_score}"
        raise ConfigurationError(msg)
    if max_iterations < 1:
        msg = f"Iteration budget must be at least 1, got {max_iterations}"
        raise ConfigurationError(msg)


class FeedbackLoopController:
    """Runs a single feedback loop. Create one controller per source file."""

    config: MutantGenConfig
    capabilities: Capabilities
    executor: RoundExecutor
    logger: logging.Logger
    state: LoopState

    def __init__(
        self,
        config: MutantGenConfig,
        capabilities: Capabilities,
        executor: RoundExecutor | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.capabilities = capabilities
        self.logger = logger or logging.getLogger(__name__)
        self.executor = executor or RoundExecutor(config, logger=self.logger)
        self.state = LoopState.IDLE

    def run_loop(
        self,
        source: SourceArtifact,
        target_score: float | None = None,
        max_iterations: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LoopResult:
        """Run rounds for source and return the finished LoopResult.

        Target and budget default to the configured values. Only invalid
        parameters raise; round failures are recorded on the result.
        """
        if self.state != LoopState.IDLE:
            msg = "This controller has already run a loop"
            raise RuntimeError(msg)

        target = self.config.target_score if target_score is None else target_score
        budget = self.config.max_iterations if max_iterations is None else max_iterations
        validate_loop_parameters(target, budget)

        test_path = output_path_for(source.path, self.config.output_dir)
        result = LoopResult(
            source_path=source.path,
            test_path=test_path,
            target_score=target,
            max_iterations=budget,
        )
        started = time.monotonic()
        self.logger.info(
            "Starting loop for %s (target %.1f, budget %d)", source.path, target, budget
        )

        previous_test: TestArtifact | None = None
        survived: list[MutantRecord] = []
        consecutive_failures = 0
        round_index = 0
        self.state = LoopState.GENERATING

        while True:
            if cancel_event is not None and cancel_event.is_set():
                self.state = LoopState.CANCELLED
                break

            round_index += 1
            # Executor covers both the drafting and the analysis step
            outcome = self.executor.execute_round(
                round_index,
                source,
                previous_test,
                survived,
                self.capabilities,
                test_path=test_path,
            )
            self.state = LoopState.ANALYZING
            result.append_round(outcome)

            self.state = LoopState.DECIDING
            consecutive_failures = 0 if outcome.success else consecutive_failures + 1
            next_state = self._decide(outcome, target, budget, consecutive_failures)
            if next_state != LoopState.IMPROVING:
                self.state = next_state
                break

            self.state = LoopState.IMPROVING
            if outcome.test_artifact is not None:
                previous_test = outcome.test_artifact
            # Only the latest round's survivors are carried forward
            survived = outcome.survived_mutants if outcome.success else []

        error = CANCELLED_ERROR if self.state == LoopState.CANCELLED else None
        result.finish(
            _TERMINAL[self.state],
            duration_seconds=time.monotonic() - started,
            error=error,
        )
        self.logger.info(
            "Loop for %s ended %s after %d round(s), final score %.2f",
            source.path,
            self.state.value,
            result.iterations,
            result.final_score,
        )
        return result

    def _decide(
        self,
        outcome: RoundOutcome,
        target: float,
        budget: int,
        consecutive_failures: int,
    ) -> LoopState:
        if outcome.success and outcome.score >= target:
            return LoopState.TARGET_REACHED
        if outcome.round_index >= budget:
            return LoopState.BUDGET_EXHAUSTED
        if (
            not outcome.success
            and consecutive_failures >= self.config.max_consecutive_failures
        ):
            return LoopState.FATAL
        return LoopState.IMPROVING
