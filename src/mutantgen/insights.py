# Copyright (c) Syntropy Systems
"""Post-run analysis of rounds, mutants and failures."""
from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from typing import Literal

from mutantgen.models import (
    BatchSummary,
    LoopResult,
    MutantRecord,
    MutantStatus,
    RoundOutcome,
)
from mutantgen.models.base import FrozenModel

Priority = Literal["high", "medium", "low"]
_PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


class MutatorStats(FrozenModel):
    """Survival numbers for one mutator."""

    mutator: str
    kind: str
    survived: int
    total: int
    survival_rate: float


class CoverageGap(FrozenModel):
    """A source line where several mutants survived."""

    line: int
    mutant_count: int
    mutators: tuple[str, ...]
    severity: Priority


class Recommendation(FrozenModel):
    """Something the user could do to raise the score."""

    category: str
    title: str
    description: str
    priority: Priority


class FailureCategory(FrozenModel):
    """How many failed loops fall into one error bucket."""

    category: str
    count: int
    percentage: float


def score_progression(rounds: Sequence[RoundOutcome]) -> list[float]:
    """Scores in round order."""
    return [r.score for r in rounds]


def detect_diminishing_returns(rounds: Sequence[RoundOutcome]) -> bool:
    """True when round-over-round gains keep shrinking.

    Needs at least three rounds. Gains count as shrinking when they drop in
    at least 60% of consecutive steps.
    """
    if len(rounds) < 3:
        return False
    scores = score_progression(rounds)
    gains = [b - a for a, b in zip(scores, scores[1:])]
    decreasing = sum(1 for a, b in zip(gains, gains[1:]) if b < a)
    return decreasing >= len(gains) * 0.6


def problematic_mutators(
    mutants: Iterable[MutantRecord],
    limit: int = 5,
) -> list[MutatorStats]:
    """Mutators ordered by survival rate among killed and survived mutants."""
    survived: Counter[str] = Counter()
    total: Counter[str] = Counter()
    kinds: dict[str, str] = {}
    for mutant in mutants:
        if mutant.status not in (MutantStatus.KILLED, MutantStatus.SURVIVED):
            continue
        total[mutant.mutator] += 1
        kinds[mutant.mutator] = mutant.kind
        if mutant.status == MutantStatus.SURVIVED:
            survived[mutant.mutator] += 1

    stats = [
        MutatorStats(
            mutator=name,
            kind=kinds[name],
            survived=survived[name],
            total=count,
            survival_rate=survived[name] / count * 100.0,
        )
        for name, count in total.items()
    ]
    # Stable sort keeps first-seen order among ties
    stats.sort(key=lambda s: s.survival_rate, reverse=True)
    return stats[:limit]


def coverage_gaps(mutants: Iterable[MutantRecord], limit: int = 10) -> list[CoverageGap]:
    """Survived mutants grouped by start line, busiest lines first."""
    by_line: dict[int, list[str]] = defaultdict(list)
    for mutant in mutants:
        if mutant.status == MutantStatus.SURVIVED:
            by_line[mutant.location.start_line].append(mutant.mutator)

    gaps: list[CoverageGap] = []
    for line, mutators in by_line.items():
        count = len(mutators)
        severity: Priority = "high" if count > 2 else "medium" if count > 1 else "low"
        gaps.append(
            CoverageGap(
                line=line,
                mutant_count=count,
                mutators=tuple(mutators),
                severity=severity,
            )
        )
    gaps.sort(key=lambda g: g.mutant_count, reverse=True)
    return gaps[:limit]


def recommendations(outcome: RoundOutcome) -> list[Recommendation]:
    """Suggestions for a round's result, highest priority first."""
    recs: list[Recommendation] = []

    if outcome.score < 50:
        recs.append(Recommendation(
            category="coverage",
            title="Low mutation score detected",
            description="Add comprehensive test cases covering basic functionality",
            priority="high",
        ))
    elif outcome.score < 80:
        recs.append(Recommendation(
            category="coverage",
            title="Improve mutation score",
            description="Focus on edge cases and boundary conditions",
            priority="medium",
        ))

    for stats in problematic_mutators(outcome.mutants, limit=3):
        if stats.survived == 0:
            continue
        recs.append(Recommendation(
            category="mutator",
            title=f"Address {stats.mutator} mutations",
            description=(
                f"{stats.survived} {stats.mutator} mutants survived "
                f"({stats.survival_rate:.1f}% survival rate)"
            ),
            priority="high" if stats.survival_rate > 50 else "medium",
        ))

    for gap in coverage_gaps(outcome.mutants, limit=3):
        recs.append(Recommendation(
            category="coverage",
            title=f"Test line {gap.line}",
            description=f"{gap.mutant_count} mutants survived at line {gap.line}",
            priority="high" if gap.severity == "high" else "medium",
        ))

    if outcome.counts.no_coverage > 0:
        recs.append(Recommendation(
            category="coverage",
            title="Untested code detected",
            description=f"{outcome.counts.no_coverage} mutants have no test coverage",
            priority="high",
        ))

    recs.sort(key=lambda r: _PRIORITY_ORDER[r.priority], reverse=True)
    return recs


def categorize_error(message: str) -> str:
    """Bucket an error message for failure breakdowns."""
    lowered = message.lower()
    if "API" in message or any(
        marker in lowered for marker in ("rate limit", "rate-limit", "request failed")
    ):
        return "API Error"
    if "timeout" in lowered or "timed out" in lowered:
        return "Timeout"
    if "file" in lowered or "path" in lowered:
        return "File System"
    if "syntax" in lowered or "parse" in lowered:
        return "Syntax Error"
    if "mutation" in lowered or "mutant" in lowered:
        return "Mutation Testing"
    return "Other"


def failure_breakdown(results: Iterable[LoopResult]) -> list[FailureCategory]:
    """Count failed loops per error category, most common first."""
    failed = [r for r in results if not r.success]
    if not failed:
        return []
    counts = Counter(categorize_error(r.error or "") for r in failed)
    return [
        FailureCategory(
            category=category,
            count=count,
            percentage=count / len(failed) * 100.0,
        )
        for category, count in counts.most_common()
    ]


def optimization_suggestions(summary: BatchSummary) -> list[Recommendation]:
    """Batch-level configuration suggestions, highest priority first."""
    suggestions: list[Recommendation] = []
    if summary.total_files == 0:
        return suggestions

    success_rate = summary.successful / summary.total_files
    if success_rate < 0.8:
        suggestions.append(Recommendation(
            category="reliability",
            title="Improve success rate",
            description=(
                f"Only {success_rate * 100:.1f}% of files completed successfully; "
                "review error patterns and adjust timeouts or API limits"
            ),
            priority="high",
        ))

    successful = [r for r in summary.results if r.success]
    if successful:
        mean_iterations = sum(r.iterations for r in successful) / len(successful)
        if mean_iterations > 4:
            suggestions.append(Recommendation(
                category="efficiency",
                title="Reduce iteration count",
                description=(
                    f"Average of {mean_iterations:.1f} iterations per file; lower "
                    "the target score or improve the initial prompts"
                ),
                priority="medium",
            ))
        reach_rate = sum(1 for r in successful if r.target_reached) / len(successful)
        if reach_rate < 0.7:
            suggestions.append(Recommendation(
                category="effectiveness",
                title="Improve target achievement",
                description=(
                    f"Only {reach_rate * 100:.1f}% of files reached the target; "
                    "adjust the target score or raise the iteration budget"
                ),
                priority="medium",
            ))

    suggestions.sort(key=lambda r: _PRIORITY_ORDER[r.priority], reverse=True)
    return suggestions
