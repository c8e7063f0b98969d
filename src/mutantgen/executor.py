# Copyright (c) Syntropy Systems
"""One round of the feedback loop: draft or improve, persist, analyze."""
from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

from mutantgen.capabilities import AnalysisOptions, GenerationContext
from mutantgen.errors import MutantGenError, ProviderError
from mutantgen.models import RoundOutcome, TestArtifact, detect_language

if TYPE_CHECKING:
    from mutantgen.capabilities import Capabilities
    from mutantgen.config import MutantGenConfig
    from mutantgen.models import MutantRecord, SourceArtifact


def output_path_for(source_path: str, output_dir: str) -> str:
    """Where the tests for source_path are written.

    The source's directory is mirrored under ``output_dir`` so that sources
    with the same name in different directories get different test files.
    Absolute paths are taken relative to the working directory when they sit
    below it. Python sources get ``test_<stem>.py``; anything else gets
    ``<stem>.test<suffix>``, the Jest convention.
    """
    source = PurePath(source_path)
    if source.is_absolute():
        try:
            source = source.relative_to(Path.cwd())
        except ValueError:
            source = PurePath(source.name)
    parents = [part for part in source.parent.parts if part not in (".", "..")]
    if source.suffix == ".py":
        name = f"test_{source.stem}.py"
    else:
        name = f"{source.stem}.test{source.suffix}"
    return str(PurePath(output_dir, *parents, name))


class RoundExecutor:
    """Runs single rounds. Never raises: failures become failed outcomes."""

    config: MutantGenConfig
    logger: logging.Logger

    def __init__(
        self,
        config: MutantGenConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def analysis_options(self) -> AnalysisOptions:
        """Options handed to every analyze call."""
        return AnalysisOptions(
            timeout_seconds=self.config.analysis.timeout_seconds,
            mutators=frozenset(self.config.analysis.mutators),
        )

    def execute_round(
        self,
        round_index: int,
        source: SourceArtifact,
        previous_test: TestArtifact | None,
        survived_mutants: Sequence[MutantRecord],
        capabilities: Capabilities,
        test_path: str | None = None,
    ) -> RoundOutcome:
        """Run one round and describe what happened."""
        started = time.monotonic()
        if test_path is None:
            test_path = output_path_for(source.path, self.config.output_dir)
        artifact: TestArtifact | None = None

        try:
            artifact = self._produce_tests(
                round_index, source, previous_test, survived_mutants,
                capabilities, test_path,
            )
            capabilities.storage.ensure_directory(str(PurePath(test_path).parent))
            capabilities.storage.write(test_path, artifact.content)

            raw = capabilities.analyzer.analyze(
                source.path, test_path, self.analysis_options()
            )
            summary = capabilities.analyzer.summarize(raw)
        except MutantGenError as e:
            self.logger.warning(
                "Round %d for %s failed: %s", round_index, source.path, e
            )
            return self._failed(round_index, artifact, e, started)
        except Exception as e:
            self.logger.exception(
                "Unexpected error in round %d for %s", round_index, source.path
            )
            return self._failed(round_index, artifact, e, started)

        self.logger.info(
            "Round %d for %s: score %.2f (%d killed, %d survived of %d)",
            round_index,
            source.path,
            summary.score,
            summary.counts.killed,
            summary.counts.survived,
            summary.counts.total,
        )
        return RoundOutcome(
            round_index=round_index,
            test_artifact=artifact,
            score=summary.score,
            authoritative=summary.authoritative,
            counts=summary.counts,
            mutants=summary.mutants,
            duration_seconds=time.monotonic() - started,
            success=True,
        )

    def _produce_tests(
        self,
        round_index: int,
        source: SourceArtifact,
        previous_test: TestArtifact | None,
        survived_mutants: Sequence[MutantRecord],
        capabilities: Capabilities,
        test_path: str,
    ) -> TestArtifact:
        generator = capabilities.generator
        if round_index == 1 or previous_test is None:
            context = GenerationContext(
                language=source.language or detect_language(source.path),
                test_framework=self.config.llm.test_framework,
            )
            code = generator.generate(source.content, source.file_name, context)
            provenance = "generated"
        else:
            code = generator.improve(
                source.content, previous_test.content, list(survived_mutants)
            )
            provenance = "improved"

        if not code.strip():
            msg = "Generator returned empty test code"
            raise ProviderError(msg, cause=ProviderError.MALFORMED_RESPONSE)
        if provenance == "improved" and previous_test and self.config.merge_improvements:
            code = f"{previous_test.content.rstrip()}\n\n{code}"

        return TestArtifact(
            path=test_path,
            content=code,
            provenance=provenance,
            round_index=round_index,
        )

    @staticmethod
    def _failed(
        round_index: int,
        artifact: TestArtifact | None,
        error: Exception,
        started: float,
    ) -> RoundOutcome:
        return RoundOutcome(
            round_index=round_index,
            test_artifact=artifact,
            duration_seconds=time.monotonic() - started,
            success=False,
            failure_cause=str(error) or type(error).__name__,
            failure_kind=type(error).__name__,
        )
