# Copyright (c) Syntropy Systems
"""Pydantic models for mutantgen."""

from .artifacts import (
    CostEstimate,
    MutantRecord,
    MutantStatus,
    SourceArtifact,
    SourceLocation,
    TestArtifact,
    detect_language,
)
from .base import FrozenModel, MutantGenBaseModel
from .results import (
    AnalysisSummary,
    BatchSummary,
    LoopResult,
    MutantCounts,
    RoundOutcome,
    TerminalState,
)
from .run import GitInfo, RoundRecord, RunMeta

__all__ = [
    "AnalysisSummary",
    "BatchSummary",
    "CostEstimate",
    "FrozenModel",
    "GitInfo",
    "LoopResult",
    "MutantCounts",
    "MutantGenBaseModel",
    "MutantRecord",
    "MutantStatus",
    "RoundOutcome",
    "RoundRecord",
    "RunMeta",
    "SourceArtifact",
    "SourceLocation",
    "TerminalState",
    "TestArtifact",
    "detect_language",
]
