# Copyright (c) Syntropy Systems
"""Pydantic models for stored run records."""

from __future__ import annotations

from pydantic import Field

from .base import JSONValue, MutantGenBaseModel
from .results import MutantCounts


class GitInfo(MutantGenBaseModel):
    """Repository state when the run started."""

    commit: str
    short_hash: str
    branch: str
    dirty: bool


class RunMeta(MutantGenBaseModel):
    """Run metadata stored in meta.json."""

    id: str
    started_at: str
    finished_at: str | None = None
    status: str = "running"
    files: list[str] = Field(default_factory=list)
    config: dict[str, JSONValue] = Field(default_factory=dict)
    summary_file: str = "summary.json"
    rounds_file: str = "rounds.jsonl"
    git: GitInfo | None = None


class RoundRecord(MutantGenBaseModel):
    """One line of rounds.jsonl."""

    source_path: str
    round_index: int
    success: bool
    score: float
    authoritative: bool
    counts: MutantCounts
    provenance: str | None = None
    test_path: str | None = None
    duration_seconds: float = 0.0
    failure_cause: str | None = None
    failure_kind: str | None = None
    timestamp: str | None = None
