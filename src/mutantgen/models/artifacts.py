# Copyright (c) Syntropy Systems
"""Pydantic models for source, test and mutant artifacts."""

from __future__ import annotations

import hashlib
from enum import Enum
from pathlib import PurePath
from typing import Literal

from pydantic import Field, model_validator

from .base import FrozenModel, MutantGenBaseModel

_LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
}


def detect_language(path: str) -> str:
    """Guess a language marker from the file suffix."""
    suffix = PurePath(path).suffix.lower()
    if suffix in _LANGUAGE_BY_SUFFIX:
        return _LANGUAGE_BY_SUFFIX[suffix]
    return suffix.lstrip(".") or "text"


class SourceArtifact(FrozenModel):
    """A source file under test. Read once per loop, never rewritten."""

    path: str
    content: str
    language: str = ""

    @model_validator(mode="before")
    @classmethod
    def _fill_language(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("language") and data.get("path"):
            return {**data, "language": detect_language(str(data["path"]))}
        return data

    @property
    def file_name(self) -> str:
        """File name without directories."""
        return PurePath(self.path).name

    @property
    def stem(self) -> str:
        """File name without directories or suffix."""
        return PurePath(self.path).stem

    @property
    def line_count(self) -> int:
        """Number of lines in the content."""
        return len(self.content.splitlines())

    @property
    def content_hash(self) -> str:
        """sha256 of the content, for reports."""
        return hashlib.sha256(self.content.encode("utf-8")).hexdigest()


class TestArtifact(FrozenModel):
    """Candidate test code produced by one round."""

    __test__ = False

    path: str
    content: str
    provenance: Literal["generated", "improved"]
    round_index: int = Field(ge=1)


class SourceLocation(FrozenModel):
    """Start/end position of a mutation in the source file."""

    start_line: int = 0
    start_column: int = 0
    end_line: int = 0
    end_column: int = 0


class MutantStatus(str, Enum):
    """Outcome of running the test suite against one mutant."""

    KILLED = "Killed"
    SURVIVED = "Survived"
    TIMED_OUT = "TimedOut"
    NO_COVERAGE = "NoCoverage"


class MutantRecord(FrozenModel):
    """A single mutant as reported by the analysis engine."""

    id: str
    mutator: str
    kind: str
    location: SourceLocation = Field(default_factory=SourceLocation)
    replacement: str = ""
    status: MutantStatus
    file_name: str | None = None
    description: str | None = None


class CostEstimate(MutantGenBaseModel):
    """Rough token and price estimate for a generation request."""

    input_tokens: int
    output_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str = "USD"
    note: str | None = None
