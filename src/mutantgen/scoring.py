# Copyright (c) Syntropy Systems
"""Mutation score computation."""

from __future__ import annotations

from collections.abc import Iterable

from mutantgen.models import AnalysisSummary, MutantCounts, MutantRecord, MutantStatus


def count_mutants(mutants: Iterable[MutantRecord]) -> MutantCounts:
    """Count mutants per status."""
    killed = survived = timed_out = no_coverage = 0
    for mutant in mutants:
        if mutant.status == MutantStatus.KILLED:
            killed += 1
        elif mutant.status == MutantStatus.SURVIVED:
            survived += 1
        elif mutant.status == MutantStatus.TIMED_OUT:
            timed_out += 1
        else:
            no_coverage += 1
    return MutantCounts(
        total=killed + survived + timed_out + no_coverage,
        killed=killed,
        survived=survived,
        timed_out=timed_out,
        no_coverage=no_coverage,
    )


def mutation_score(counts: MutantCounts) -> tuple[float, bool]:
    """Return ``(score, authoritative)`` for a set of counts.

    The score is the percentage of covered mutants that were killed. With no
    covered mutants the score is 0 and the result is not authoritative.
    """
    eligible = counts.total - counts.no_coverage
    if eligible <= 0:
        return 0.0, False
    return counts.killed / eligible * 100.0, True


def summarize_mutants(mutants: Iterable[MutantRecord]) -> AnalysisSummary:
    """Build an analysis summary from mutant records, preserving their order."""
    ordered = tuple(mutants)
    counts = count_mutants(ordered)
    score, authoritative = mutation_score(counts)
    return AnalysisSummary(
        score=score,
        authoritative=authoritative,
        counts=counts,
        mutants=ordered,
    )
