# Copyright (c) Syntropy Systems
"""Pytest fixtures for mutantgen tests."""

import os
import tempfile
import threading
from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from typing import Optional, Union

import pytest

from mutantgen.adapters.storage import MemoryStorage
from mutantgen.capabilities import AnalysisOptions, Capabilities, GenerationContext
from mutantgen.config import MutantGenConfig
from mutantgen.models import (
    CostEstimate,
    MutantRecord,
    MutantStatus,
    SourceArtifact,
    SourceLocation,
)
from mutantgen.scoring import summarize_mutants

# Store original cwd at module load time
_original_cwd = Path.cwd()

SAMPLE_SOURCE = """\
function add(a, b) {
  return a + b;
}

function isAdult(age) {
  return age >= 18;
}

module.exports = { add, isAdult };
"""

Step = Union[float, Exception]


def make_mutants(
    killed: int = 0,
    survived: int = 0,
    timed_out: int = 0,
    no_coverage: int = 0,
) -> list[MutantRecord]:
    """Build mutants with the given status counts, lines numbered in order."""
    mutants: list[MutantRecord] = []
    plan = (
        [MutantStatus.KILLED] * killed
        + [MutantStatus.SURVIVED] * survived
        + [MutantStatus.TIMED_OUT] * timed_out
        + [MutantStatus.NO_COVERAGE] * no_coverage
    )
    for i, status in enumerate(plan, start=1):
        mutator = "EqualityOperator" if i % 2 else "ArithmeticOperator"
        mutants.append(
            MutantRecord(
                id=str(i),
                mutator=mutator,
                kind="boundary" if i % 2 else "arithmetic",
                location=SourceLocation(start_line=i, end_line=i),
                replacement=f"replacement {i}",
                status=status,
            )
        )
    return mutants


def mutants_for_score(score: float, total: int = 100) -> list[MutantRecord]:
    """Mutants whose mutation score is score (rounded to whole mutants)."""
    killed = round(score * total / 100)
    return make_mutants(killed=killed, survived=total - killed)


class ScriptedGenerator:
    """TestGenerator that returns canned code and records every call."""

    def __init__(self, errors: Optional[dict[int, Exception]] = None) -> None:
        # Keyed by 1-based call number
        self.errors = errors or {}
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _next(self, entry: tuple) -> int:
        with self._lock:
            self.calls.append(entry)
            call_number = len(self.calls)
        if call_number in self.errors:
            raise self.errors[call_number]
        return call_number

    def generate(self, source_code: str, file_name: str, context: GenerationContext) -> str:
        n = self._next(("generate", source_code, file_name, context))
        return f"// generated tests for {file_name} (call {n})\ntest('works', () => {{}});"

    def improve(self, source_code: str, existing_tests: str, survived_mutants) -> str:
        n = self._next(("improve", source_code, existing_tests, list(survived_mutants)))
        return f"// improved tests (call {n})\ntest('kills mutants', () => {{}});"

    def health_check(self) -> bool:
        return True

    def estimate_cost(self, text: str, options=None) -> CostEstimate:
        return CostEstimate(
            input_tokens=len(text),
            output_tokens=0,
            input_cost=0.0,
            output_cost=0.0,
            total_cost=0.0,
        )


class ScriptedAnalyzer:
    """MutationAnalyzer that replays one step per analyze call.

    A float step produces mutants with that score; an exception step is raised.
    Once the script runs out the last step repeats.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self.steps = list(steps)
        self.calls: list[tuple[str, str, AnalysisOptions]] = []

    def analyze(self, source_file: str, test_file: str, options: AnalysisOptions):
        index = min(len(self.calls), len(self.steps) - 1)
        self.calls.append((source_file, test_file, options))
        step = self.steps[index]
        if isinstance(step, Exception):
            raise step
        return mutants_for_score(step)

    def summarize(self, raw_result):
        return summarize_mutants(raw_result)

    def is_available(self) -> bool:
        return True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mutantgen_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary mutantgen project and chdir into it."""
    project_dir = temp_dir / ".mutantgen"
    project_dir.mkdir()
    (project_dir / "runs").mkdir()

    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def config() -> MutantGenConfig:
    """Default config with memory storage and a short failure limit."""
    return MutantGenConfig(storage="memory", max_consecutive_failures=2)


@pytest.fixture
def source() -> SourceArtifact:
    """A small JavaScript source file."""
    return SourceArtifact(path="src/calc.js", content=SAMPLE_SOURCE)


@pytest.fixture
def scripted() -> Callable[..., Capabilities]:
    """Factory for capabilities driven by a score script."""

    def _build(
        steps: Sequence[Step],
        generator_errors: Optional[dict[int, Exception]] = None,
        storage: Optional[MemoryStorage] = None,
    ) -> Capabilities:
        return Capabilities(
            generator=ScriptedGenerator(errors=generator_errors),
            analyzer=ScriptedAnalyzer(steps),
            storage=storage if storage is not None else MemoryStorage(),
        )

    return _build
