# Copyright (c) Syntropy Systems
"""Mutation analyzers that read mutation-testing-report-schema JSON.

Both analyzers run an external engine through ``ProcessRunner`` and read the
JSON report it leaves behind. Turning a report into an ``AnalysisSummary`` is
pure, so summarizing the same raw result twice gives identical output.
"""
from __future__ import annotations

import contextlib
import json
import logging
import shutil
import subprocess
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, cast

from mutantgen.adapters.runner import ProcessResult, ProcessRunner
from mutantgen.errors import AnalysisError
from mutantgen.models import MutantRecord, MutantStatus, SourceLocation
from mutantgen.scoring import summarize_mutants

if TYPE_CHECKING:
    from mutantgen.capabilities import AnalysisOptions
    from mutantgen.config import AnalysisSettings, MutantGenConfig
    from mutantgen.models import AnalysisSummary

logger = logging.getLogger(__name__)

# Engine status -> counted status. Anything else is left out of the counts.
_STATUS_MAP = {
    "Killed": MutantStatus.KILLED,
    "Survived": MutantStatus.SURVIVED,
    "Timeout": MutantStatus.TIMED_OUT,
    "TimedOut": MutantStatus.TIMED_OUT,
    "NoCoverage": MutantStatus.NO_COVERAGE,
}

MUTATOR_KINDS = {
    "EqualityOperator": "boundary",
    "ConditionalExpression": "conditional",
    "ArithmeticOperator": "arithmetic",
    "UpdateOperator": "arithmetic",
    "AssignmentOperator": "arithmetic",
    "BooleanLiteral": "literal",
    "StringLiteral": "literal",
    "ArrayDeclaration": "literal",
    "ObjectLiteral": "literal",
    "Regex": "literal",
    "LogicalOperator": "logical",
    "UnaryOperator": "unary",
    "BlockStatement": "statement",
    "MethodExpression": "call",
    "OptionalChaining": "call",
}

# Engine exit codes that mean "ran to completion"; 1 is returned when mutants survive
_OK_EXIT_CODES = (0, 1)
_OUTPUT_TAIL_CHARS = 2000


def mutator_kind(mutator: str) -> str:
    """Semantic kind tag for an engine mutator name."""
    return MUTATOR_KINDS.get(mutator, mutator.lower())


@dataclass(frozen=True)
class RawAnalysis:
    """What an analyzer hands back: the parsed report plus the kind filter."""

    report: Mapping[str, object]
    kinds: frozenset[str] = field(default_factory=frozenset)
    output: str = ""


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return 0


def _location(raw: object) -> SourceLocation:
    if not isinstance(raw, Mapping):
        return SourceLocation()
    loc = cast("Mapping[str, object]", raw)
    start = loc.get("start")
    end = loc.get("end")
    start_map = cast("Mapping[str, object]", start) if isinstance(start, Mapping) else {}
    end_map = cast("Mapping[str, object]", end) if isinstance(end, Mapping) else {}
    return SourceLocation(
        start_line=_as_int(start_map.get("line")),
        start_column=_as_int(start_map.get("column")),
        end_line=_as_int(end_map.get("line")),
        end_column=_as_int(end_map.get("column")),
    )


def parse_mutants(
    report: Mapping[str, object],
    kinds: frozenset[str] = frozenset(),
) -> list[MutantRecord]:
    """Extract counted mutants from a report, in report order.

    Mutants whose status is not counted (compile errors, ignored, pending)
    are dropped, as are mutants whose kind is not in ``kinds`` when given.
    """
    files = report.get("files")
    if not isinstance(files, Mapping):
        return []

    records: list[MutantRecord] = []
    for file_name, file_entry in cast("Mapping[str, object]", files).items():
        if not isinstance(file_entry, Mapping):
            continue
        mutants = cast("Mapping[str, object]", file_entry).get("mutants")
        if not isinstance(mutants, list):
            continue
        for raw in cast("list[object]", mutants):
            if not isinstance(raw, Mapping):
                continue
            mutant = cast("Mapping[str, object]", raw)
            status = _STATUS_MAP.get(str(mutant.get("status", "")))
            if status is None:
                continue
            mutator = str(mutant.get("mutatorName", "unknown"))
            kind = mutator_kind(mutator)
            if kinds and kind not in kinds:
                continue
            description = mutant.get("description") or mutant.get("statusReason")
            records.append(
                MutantRecord(
                    id=str(mutant.get("id", len(records) + 1)),
                    mutator=mutator,
                    kind=kind,
                    location=_location(mutant.get("location")),
                    replacement=str(mutant.get("replacement") or ""),
                    status=status,
                    file_name=str(file_name),
                    description=str(description) if description else None,
                )
            )
    return records


def summarize_report(
    report: Mapping[str, object],
    kinds: frozenset[str] = frozenset(),
) -> AnalysisSummary:
    """Score a mutation-testing report."""
    return summarize_mutants(parse_mutants(report, kinds))


def load_report(path: Path) -> dict[str, object]:
    """Read a JSON report, raising AnalysisError if it is missing or invalid."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        msg = f"Mutation report not found: {path}"
        raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION) from e
    except (OSError, ValueError) as e:
        msg = f"Could not read mutation report {path}: {e}"
        raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION) from e
    if not isinstance(data, dict):
        msg = f"Mutation report {path} is not a JSON object"
        raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION)
    return cast("dict[str, object]", data)


def has_report_placeholder(command: list[str]) -> bool:
    """True when the argv tells the engine where to write its report."""
    return any("{report}" in token for token in command)


def shares_report_path(config: MutantGenConfig) -> bool:
    """True when every run of the configured analyzer writes the same report file."""
    return config.analyzer.lower() == "command" and not has_report_placeholder(
        config.analysis.command
    )


class ReportAnalyzer:
    """Shared process handling and summarizing for report-based analyzers."""

    name: str = "report"

    settings: AnalysisSettings
    workdir: Path
    logger: logging.Logger

    def __init__(
        self,
        settings: AnalysisSettings,
        workdir: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.workdir = workdir or Path(settings.workdir or Path.cwd())
        self.logger = logger or logging.getLogger(__name__)

    @property
    def report_path(self) -> Path:
        """Where the engine writes its JSON report."""
        path = Path(self.settings.report_path)
        return path if path.is_absolute() else self.workdir / path

    def summarize(self, raw_result: object) -> AnalysisSummary:
        """Score a RawAnalysis or a bare report mapping."""
        if isinstance(raw_result, RawAnalysis):
            return summarize_report(raw_result.report, raw_result.kinds)
        if isinstance(raw_result, Mapping):
            return summarize_report(cast("Mapping[str, object]", raw_result))
        msg = f"Cannot summarize {type(raw_result).__name__}"
        raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION)

    def _execute(
        self,
        argv: list[str],
        timeout: float,
        report_path: Path,
        scratch_dir: Path,
    ) -> ProcessResult:
        """Run the engine, translating failures into AnalysisError."""
        # A stale report from an earlier run must not be mistaken for this one
        with contextlib.suppress(FileNotFoundError):
            report_path.unlink()

        self.logger.debug("Running %s", " ".join(argv))
        runner = ProcessRunner(argv, self.workdir, scratch_dir / "output.log")
        try:
            result = runner.run(
                timeout=timeout,
                grace_period=self.settings.kill_grace_period,
            )
        except OSError as e:
            msg = f"Could not start {self.name}: {e}"
            raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION) from e

        if result.timed_out:
            msg = f"{self.name} timed out after {timeout:.0f}s"
            raise AnalysisError(msg, cause=AnalysisError.TIMEOUT)
        if result.exit_code not in _OK_EXIT_CODES:
            tail = result.output[-_OUTPUT_TAIL_CHARS:].strip()
            cause = (
                AnalysisError.SYNTAX
                if "SyntaxError" in tail
                else AnalysisError.INSTRUMENTATION
            )
            msg = f"{self.name} exited with code {result.exit_code}"
            if tail:
                msg = f"{msg}: {tail.splitlines()[-1]}"
            raise AnalysisError(msg, cause=cause)

        self.logger.debug(
            "%s finished in %.1fs (exit %d)",
            self.name,
            result.duration_seconds,
            result.exit_code,
        )
        return result


class CommandAnalyzer(ReportAnalyzer):
    """Runs a configured argv and reads the report it writes.

    ``{source}``, ``{test}`` and ``{report}`` in the argv are replaced with
    the source file, test file and report path.
    """

    name = "command"

    command: list[str]

    def __init__(
        self,
        settings: AnalysisSettings,
        workdir: Path | None = None,
        logger: logging.Logger | None = None,
        command: list[str] | None = None,
    ) -> None:
        super().__init__(settings, workdir=workdir, logger=logger)
        self.command = list(command if command is not None else settings.command)

    @property
    def uses_report_placeholder(self) -> bool:
        """True when the command is told where to write its report."""
        return has_report_placeholder(self.command)

    def build_argv(
        self,
        source_file: str,
        test_file: str,
        report_path: Path | None = None,
    ) -> list[str]:
        """Substitute placeholders into the configured argv."""
        values = {
            "source": source_file,
            "test": test_file,
            "report": str(report_path or self.report_path),
        }
        argv: list[str] = []
        for token in self.command:
            for key, value in values.items():
                token = token.replace(f"{{{key}}}", value)
            argv.append(token)
        return argv

    def analyze(
        self,
        source_file: str,
        test_file: str,
        options: AnalysisOptions,
    ) -> RawAnalysis:
        """Run the command and load its report."""
        if not self.command:
            msg = "No analysis.command configured for the command analyzer"
            raise AnalysisError(msg, cause=AnalysisError.INSTRUMENTATION)
        with tempfile.TemporaryDirectory(prefix="mutantgen-") as tmp:
            scratch_dir = Path(tmp)
            # Per-run report path keeps concurrent loops apart
            report_path = (
                scratch_dir / "mutation.json"
                if self.uses_report_placeholder
                else self.report_path
            )
            result = self._execute(
                self.build_argv(source_file, test_file, report_path),
                timeout=options.timeout_seconds,
                report_path=report_path,
                scratch_dir=scratch_dir,
            )
            report = load_report(report_path)
        return RawAnalysis(report=report, kinds=options.mutators, output=result.output)

    def is_available(self) -> bool:
        """True when the command's executable can be found."""
        return bool(self.command) and shutil.which(self.command[0]) is not None


class StrykerAnalyzer(ReportAnalyzer):
    """Runs StrykerJS against one source file and its test file."""

    name = "stryker"

    def stryker_config(
        self,
        source_file: str,
        test_file: str,
        options: AnalysisOptions,
        report_path: Path | None = None,
    ) -> dict[str, object]:
        """Build the temporary Stryker configuration."""
        excluded = sorted(
            name for name, kind in MUTATOR_KINDS.items()
            if options.mutators and kind not in options.mutators
        )
        report_file = str(report_path or self.report_path)
        return {
            "packageManager": "npm",
            "reporters": ["json", "clear-text"],
            "testRunner": self.settings.test_runner,
            "coverageAnalysis": "perTest",
            "mutate": [source_file],
            "testFiles": [test_file],
            "timeoutMS": 30000,
            "tempDirName": ".stryker-tmp",
            "cleanTempDir": True,
            "mutator": {"excludedMutations": excluded},
            "thresholds": {"high": 80, "low": 60, "break": None},
            "jsonReporter": {"fileName": report_file},
        }

    def analyze(
        self,
        source_file: str,
        test_file: str,
        options: AnalysisOptions,
    ) -> RawAnalysis:
        """Write a temporary config, run ``npx stryker run`` and load the report."""
        with tempfile.TemporaryDirectory(prefix="mutantgen-") as tmp:
            scratch_dir = Path(tmp)
            report_path = scratch_dir / "mutation.json"
            config_path = scratch_dir / "stryker.conf.json"
            config = self.stryker_config(source_file, test_file, options, report_path)
            _ = config_path.write_text(json.dumps(config, indent=2), encoding="utf-8")
            result = self._execute(
                ["npx", "stryker", "run", "--configFile", str(config_path)],
                timeout=options.timeout_seconds,
                report_path=report_path,
                scratch_dir=scratch_dir,
            )
            report = load_report(report_path)
        return RawAnalysis(report=report, kinds=options.mutators, output=result.output)

    def is_available(self) -> bool:
        """True when ``npx stryker --version`` succeeds."""
        if shutil.which("npx") is None:
            return False
        try:
            completed = subprocess.run(  # noqa: S603
                ["npx", "--no-install", "stryker", "--version"],  # noqa: S607
                cwd=self.workdir,
                capture_output=True,
                timeout=60,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.warning("Stryker availability check failed: %s", e)
            return False
        return completed.returncode == 0


def create_command_analyzer(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> CommandAnalyzer:
    """Registry factory for the command analyzer."""
    return CommandAnalyzer(config.analysis, logger=logger)


def create_stryker_analyzer(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> StrykerAnalyzer:
    """Registry factory for the Stryker analyzer."""
    return StrykerAnalyzer(config.analysis, logger=logger)
