# Copyright (c) Syntropy Systems
"""Fold loop results into a batch summary."""
from __future__ import annotations

from collections.abc import Iterable

from mutantgen.models import BatchSummary, LoopResult


def aggregate(
    loop_results: Iterable[LoopResult],
    duration_seconds: float = 0.0,
) -> BatchSummary:
    """Summarize loop results, keeping their order.

    The mean score covers successful loops only. With no successful loops
    the mean is 0 and ``no_successful_runs`` is set.
    """
    results = list(loop_results)
    successful = [r for r in results if r.success]
    mean_score = (
        sum(r.final_score for r in successful) / len(successful) if successful else 0.0
    )
    return BatchSummary(
        total_files=len(results),
        successful=len(successful),
        failed=len(results) - len(successful),
        mean_score=mean_score,
        no_successful_runs=not successful,
        target_reached=sum(1 for r in results if r.target_reached),
        total_iterations=sum(r.iterations for r in results),
        duration_seconds=duration_seconds,
        results=results,
    )
