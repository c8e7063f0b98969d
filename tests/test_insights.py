"""Tests for post-run insights."""

import pytest

from mutantgen.aggregator import aggregate
from mutantgen.insights import (
    categorize_error,
    coverage_gaps,
    detect_diminishing_returns,
    failure_breakdown,
    optimization_suggestions,
    problematic_mutators,
    recommendations,
    score_progression,
)
from mutantgen.models import (
    LoopResult,
    MutantRecord,
    MutantStatus,
    RoundOutcome,
    SourceLocation,
    TerminalState,
)
from mutantgen.scoring import summarize_mutants

from conftest import make_mutants


def _rounds(*scores: float) -> list[RoundOutcome]:
    return [
        RoundOutcome(round_index=i, score=s, success=True)
        for i, s in enumerate(scores, start=1)
    ]


def _mutant(mutant_id: str, mutator: str, line: int, status: MutantStatus) -> MutantRecord:
    return MutantRecord(
        id=mutant_id,
        mutator=mutator,
        kind=mutator.lower(),
        location=SourceLocation(start_line=line, end_line=line),
        status=status,
    )


def _outcome(mutants: list[MutantRecord]) -> RoundOutcome:
    summary = summarize_mutants(mutants)
    return RoundOutcome(
        round_index=1,
        score=summary.score,
        authoritative=summary.authoritative,
        counts=summary.counts,
        mutants=summary.mutants,
        success=True,
    )


def _loop(path: str, success: bool, error: str | None = None, iterations: int = 1,
          reached: bool = True) -> LoopResult:
    result = LoopResult(
        source_path=path, test_path=f"tests/{path}", target_score=80.0, max_iterations=10
    )
    for index in range(1, iterations + 1):
        result.append_round(
            RoundOutcome(
                round_index=index,
                score=90.0 if reached else 50.0,
                success=success,
                failure_cause=None if success else error,
            )
        )
    if not success:
        state = TerminalState.FATAL
    elif reached:
        state = TerminalState.TARGET_REACHED
    else:
        state = TerminalState.BUDGET_EXHAUSTED
    result.finish(state, duration_seconds=1.0)
    return result


class TestProgression:
    """Tests for score progression analysis."""

    def test_score_progression(self):
        """Test scores come back in round order."""
        assert score_progression(_rounds(40.0, 60.0, 70.0)) == [40.0, 60.0, 70.0]

    def test_diminishing_returns(self):
        """Test shrinking gains are detected."""
        assert detect_diminishing_returns(_rounds(40.0, 60.0, 70.0, 74.0)) is True

    def test_steady_gains(self):
        """Test growing gains are not flagged."""
        assert detect_diminishing_returns(_rounds(40.0, 45.0, 55.0, 70.0)) is False

    def test_needs_three_rounds(self):
        """Test that two rounds are never enough."""
        assert detect_diminishing_returns(_rounds(40.0, 41.0)) is False


class TestMutantAnalysis:
    """Tests for mutator and line statistics."""

    def test_problematic_mutators(self):
        """Test survival rates per mutator, worst first."""
        mutants = [
            _mutant("1", "EqualityOperator", 3, MutantStatus.SURVIVED),
            _mutant("2", "EqualityOperator", 4, MutantStatus.SURVIVED),
            _mutant("3", "EqualityOperator", 5, MutantStatus.KILLED),
            _mutant("4", "ArithmeticOperator", 2, MutantStatus.KILLED),
            _mutant("5", "ArithmeticOperator", 2, MutantStatus.SURVIVED),
            _mutant("6", "BooleanLiteral", 7, MutantStatus.NO_COVERAGE),
        ]

        stats = problematic_mutators(mutants)

        assert [s.mutator for s in stats] == ["EqualityOperator", "ArithmeticOperator"]
        assert stats[0].survived == 2
        assert stats[0].total == 3
        assert stats[0].survival_rate == pytest.approx(200 / 3)
        assert stats[1].survival_rate == pytest.approx(50.0)

    def test_coverage_gaps(self):
        """Test grouping survivors by line with severity."""
        mutants = [
            _mutant("1", "EqualityOperator", 6, MutantStatus.SURVIVED),
            _mutant("2", "ConditionalExpression", 6, MutantStatus.SURVIVED),
            _mutant("3", "BooleanLiteral", 6, MutantStatus.SURVIVED),
            _mutant("4", "ArithmeticOperator", 2, MutantStatus.SURVIVED),
            _mutant("5", "ArithmeticOperator", 9, MutantStatus.KILLED),
        ]

        gaps = coverage_gaps(mutants)

        assert [g.line for g in gaps] == [6, 2]
        assert gaps[0].mutant_count == 3
        assert gaps[0].severity == "high"
        assert gaps[0].mutators == ("EqualityOperator", "ConditionalExpression", "BooleanLiteral")
        assert gaps[1].severity == "low"

    def test_coverage_gaps_limit(self):
        """Test the gap limit."""
        gaps = coverage_gaps(make_mutants(survived=20), limit=10)

        assert len(gaps) == 10


class TestRecommendations:
    """Tests for per-round recommendations."""

    def test_low_score(self):
        """Test that a low score leads with a high-priority item."""
        recs = recommendations(_outcome(make_mutants(killed=2, survived=8)))

        assert recs[0].priority == "high"
        assert any(r.title == "Low mutation score detected" for r in recs)

    def test_medium_score(self):
        """Test the medium band."""
        recs = recommendations(_outcome(make_mutants(killed=7, survived=3)))

        assert any(r.title == "Improve mutation score" for r in recs)

    def test_no_coverage(self):
        """Test that uncovered mutants are called out."""
        recs = recommendations(_outcome(make_mutants(killed=9, no_coverage=2)))

        assert [r.title for r in recs] == ["Untested code detected"]

    def test_perfect_round(self):
        """Test that a perfect round needs nothing."""
        assert recommendations(_outcome(make_mutants(killed=5))) == []

    def test_sorted_by_priority(self):
        """Test high priority items come before medium ones."""
        recs = recommendations(_outcome(make_mutants(killed=7, survived=3)))
        order = {"high": 3, "medium": 2, "low": 1}

        ranks = [order[r.priority] for r in recs]
        assert ranks == sorted(ranks, reverse=True)


class TestFailures:
    """Tests for failure categorization."""

    @pytest.mark.parametrize(
        ("message", "category"),
        [
            ("openai request failed with HTTP 429", "API Error"),
            ("API key rejected", "API Error"),
            ("stryker timed out after 300s", "Timeout"),
            ("Could not read src/a.js: file not found", "File System"),
            ("SyntaxError: unexpected token", "Syntax Error"),
            ("Mutation report not parseable", "Syntax Error"),
            ("no mutants were generated", "Mutation Testing"),
            ("something odd", "Other"),
        ],
    )
    def test_categorize_error(self, message, category):
        """Test the error buckets."""
        assert categorize_error(message) == category

    def test_failure_breakdown(self):
        """Test counting failed loops per category."""
        results = [
            _loop("a.js", success=False, error="stryker timed out after 300s"),
            _loop("b.js", success=False, error="timeout waiting for engine"),
            _loop("c.js", success=False, error="openai request failed with HTTP 500"),
            _loop("d.js", success=True),
        ]

        breakdown = failure_breakdown(results)

        assert breakdown[0].category == "Timeout"
        assert breakdown[0].count == 2
        assert breakdown[0].percentage == pytest.approx(200 / 3)
        assert breakdown[1].category == "API Error"

    def test_no_failures(self):
        """Test that successful batches have no breakdown."""
        assert failure_breakdown([_loop("a.js", success=True)]) == []


class TestOptimizationSuggestions:
    """Tests for batch-level suggestions."""

    def test_low_success_rate(self):
        """Test that a failing batch suggests reliability work."""
        summary = aggregate([
            _loop("a.js", success=True),
            _loop("b.js", success=False, error="x"),
        ])

        suggestions = optimization_suggestions(summary)

        assert suggestions[0].category == "reliability"
        assert suggestions[0].priority == "high"

    def test_many_iterations_and_missed_targets(self):
        """Test efficiency and effectiveness suggestions."""
        summary = aggregate([
            _loop("a.js", success=True, iterations=5, reached=False),
            _loop("b.js", success=True, iterations=6, reached=False),
        ])

        categories = {s.category for s in optimization_suggestions(summary)}

        assert categories == {"efficiency", "effectiveness"}

    def test_healthy_batch(self):
        """Test that a healthy batch gets no suggestions."""
        summary = aggregate([_loop("a.js", success=True), _loop("b.js", success=True)])

        assert optimization_suggestions(summary) == []

    def test_empty_batch(self):
        """Test that an empty batch gets no suggestions."""
        assert optimization_suggestions(aggregate([])) == []
