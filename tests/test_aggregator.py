"""Tests for batch aggregation."""

import pytest

from mutantgen.aggregator import aggregate
from mutantgen.models import LoopResult, RoundOutcome, TerminalState


def _finished(path: str, scores: list[float], state: TerminalState) -> LoopResult:
    result = LoopResult(
        source_path=path,
        test_path=f"tests/{path}",
        target_score=80.0,
        max_iterations=5,
    )
    for index, score in enumerate(scores, start=1):
        result.append_round(RoundOutcome(round_index=index, score=score, success=True))
    result.finish(state, duration_seconds=1.0)
    return result


def _fatal(path: str) -> LoopResult:
    result = LoopResult(
        source_path=path, test_path=f"tests/{path}", target_score=80.0, max_iterations=5
    )
    result.append_round(
        RoundOutcome(round_index=1, success=False, failure_cause="engine crashed")
    )
    result.finish(TerminalState.FATAL, duration_seconds=0.5)
    return result


class TestAggregate:
    """Tests for folding loop results."""

    def test_mixed_batch(self):
        """Test a batch with two successes and one fatal loop."""
        results = [
            _finished("a.js", [70.0, 82.0], TerminalState.TARGET_REACHED),
            _fatal("b.js"),
            _finished("c.js", [91.0], TerminalState.TARGET_REACHED),
        ]

        summary = aggregate(results, duration_seconds=3.0)

        assert summary.total_files == 3
        assert summary.successful == 2
        assert summary.failed == 1
        assert summary.mean_score == pytest.approx(86.5)
        assert summary.no_successful_runs is False
        assert summary.target_reached == 2
        assert summary.total_iterations == 4
        assert summary.duration_seconds == 3.0
        assert summary.all_reached_target is False

    def test_keeps_input_order(self):
        """Test that results are listed in the order given."""
        results = [
            _fatal("z.js"),
            _finished("a.js", [90.0], TerminalState.TARGET_REACHED),
            _finished("m.js", [50.0], TerminalState.BUDGET_EXHAUSTED),
        ]

        summary = aggregate(results)

        assert [r.source_path for r in summary.results] == ["z.js", "a.js", "m.js"]

    def test_no_successful_runs(self):
        """Test that a batch of failures has a zero mean and a flag."""
        summary = aggregate([_fatal("a.js"), _fatal("b.js")])

        assert summary.successful == 0
        assert summary.mean_score == 0.0
        assert summary.no_successful_runs is True

    def test_empty_batch(self):
        """Test aggregating nothing."""
        summary = aggregate([])

        assert summary.total_files == 0
        assert summary.no_successful_runs is True
        assert summary.all_reached_target is False

    def test_budget_exhausted_counts_as_success(self):
        """Test that a scored loop below target still counts towards the mean."""
        summary = aggregate([
            _finished("a.js", [40.0, 60.0], TerminalState.BUDGET_EXHAUSTED),
            _finished("b.js", [100.0], TerminalState.TARGET_REACHED),
        ])

        assert summary.successful == 2
        assert summary.mean_score == pytest.approx(80.0)
        assert summary.target_reached == 1
        assert summary.all_reached_target is False

    def test_all_reached_target(self):
        """Test the all-reached flag."""
        summary = aggregate([
            _finished("a.js", [85.0], TerminalState.TARGET_REACHED),
            _finished("b.js", [95.0], TerminalState.TARGET_REACHED),
        ])

        assert summary.all_reached_target is True
