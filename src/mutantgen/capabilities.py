# Copyright (c) Syntropy Systems
"""Behavioral contracts for the three pluggable capabilities.

The loop only talks to test generation, mutation analysis and storage
through these protocols. Concrete implementations live in
``mutantgen.adapters`` and are looked up by name in ``mutantgen.registry``.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from pydantic import Field

from mutantgen.models import AnalysisSummary, CostEstimate, MutantRecord
from mutantgen.models.base import FrozenModel


class GenerationContext(FrozenModel):
    """Extra context sent with a generate request."""

    language: str | None = None
    test_framework: str | None = None
    existing_tests: str | None = None
    survived_mutants: tuple[MutantRecord, ...] = ()


class AnalysisOptions(FrozenModel):
    """Options sent with an analyze request."""

    timeout_seconds: float = Field(default=300.0, gt=0)
    # Mutator kind tags; empty means every kind the engine supports
    mutators: frozenset[str] = frozenset()


@runtime_checkable
class TestGenerator(Protocol):
    """Drafts and improves test code.

    Implementations raise ProviderError on failure and never retry
    internally. Returned code is only expected to look like test code;
    whether it is any good is decided by mutation analysis.
    """

    def generate(
        self,
        source_code: str,
        file_name: str,
        context: GenerationContext,
    ) -> str:
        """Return initial test code for source_code."""
        ...

    def improve(
        self,
        source_code: str,
        existing_tests: str,
        survived_mutants: Sequence[MutantRecord],
    ) -> str:
        """Return test code that targets the survived mutants."""
        ...

    def health_check(self) -> bool:
        """Return whether the provider answers requests."""
        ...

    def estimate_cost(
        self,
        text: str,
        options: Mapping[str, object] | None = None,
    ) -> CostEstimate:
        """Estimate the cost of a request for text."""
        ...


@runtime_checkable
class MutationAnalyzer(Protocol):
    """Scores a test file by running mutants of the source file."""

    def analyze(
        self,
        source_file: str,
        test_file: str,
        options: AnalysisOptions,
    ) -> object:
        """Run the engine and return its raw result.

        Raises AnalysisError on engine failure or timeout.
        """
        ...

    def summarize(self, raw_result: object) -> AnalysisSummary:
        """Derive score, counts and mutants from a raw result.

        Must be pure and deterministic.
        """
        ...

    def is_available(self) -> bool:
        """Return whether the engine can be run."""
        ...


@runtime_checkable
class Storage(Protocol):
    """UTF-8 text storage. Writes are atomic from the caller's view."""

    def read(self, path: str) -> str:
        """Return the content at path."""
        ...

    def write(self, path: str, content: str) -> None:
        """Replace the content at path."""
        ...

    def exists(self, path: str) -> bool:
        """Return whether path exists."""
        ...

    def ensure_directory(self, path: str) -> None:
        """Create path and its parents if missing."""
        ...


@dataclass(frozen=True)
class Capabilities:
    """The capability instances used by one loop."""

    generator: TestGenerator
    analyzer: MutationAnalyzer
    storage: Storage

    def close(self) -> None:
        """Close every member that holds resources, such as an HTTP client."""
        for member in (self.generator, self.analyzer, self.storage):
            release(member)


def release(provider: object) -> None:
    """Call ``close()`` on a provider that has one."""
    close = getattr(provider, "close", None)
    if callable(close):
        close()
