# Copyright (c) Syntropy Systems
"""Run feedback loops for many files on a bounded worker pool."""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from mutantgen.adapters.mutation import shares_report_path
from mutantgen.aggregator import aggregate
from mutantgen.controller import FeedbackLoopController, validate_loop_parameters
from mutantgen.errors import ConfigurationError, StorageError
from mutantgen.executor import output_path_for
from mutantgen.models import LoopResult, SourceArtifact, TerminalState
from mutantgen.registry import build_capabilities, check_providers

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Sequence
    from concurrent.futures import Future

    from mutantgen.capabilities import Capabilities
    from mutantgen.config import MutantGenConfig
    from mutantgen.models import BatchSummary

logger = logging.getLogger(__name__)


def run_file(
    path: str,
    config: MutantGenConfig,
    capabilities: Capabilities,
    cancel_event: threading.Event | None = None,
) -> LoopResult:
    """Read one source file and run its loop.

    A source that cannot be read yields a Fatal LoopResult with no rounds.
    """
    started = time.monotonic()
    try:
        content = capabilities.storage.read(path)
    except StorageError as e:
        logger.error("Could not read %s: %s", path, e)
        result = LoopResult(
            source_path=path,
            test_path=output_path_for(path, config.output_dir),
            target_score=config.target_score,
            max_iterations=config.max_iterations,
        )
        result.finish(
            TerminalState.FATAL,
            duration_seconds=time.monotonic() - started,
            error=str(e),
        )
        return result

    source = SourceArtifact(path=path, content=content)
    controller = FeedbackLoopController(config, capabilities)
    return controller.run_loop(source, cancel_event=cancel_event)


def check_isolation(paths: Sequence[str], config: MutantGenConfig) -> None:
    """Raise ConfigurationError if two loops of this batch would share a file.

    Loops write their tests to ``output_path_for``, and a command analyzer
    without a ``{report}`` placeholder always writes one report path.
    """
    owners: dict[str, str] = {}
    for path in paths:
        test_path = output_path_for(path, config.output_dir)
        if test_path in owners:
            msg = f"{owners[test_path]} and {path} would both write tests to {test_path}"
            raise ConfigurationError(msg)
        owners[test_path] = path

    if config.concurrency > 1 and len(paths) > 1 and shares_report_path(config):
        msg = (
            "analysis.command has no {report} placeholder, so concurrent runs "
            f"would share {config.analysis.report_path}; add {{report}} to the "
            "command or set concurrency to 1"
        )
        raise ConfigurationError(msg)


def _run_and_close(
    path: str,
    config: MutantGenConfig,
    capabilities: Capabilities,
    cancel_event: threading.Event | None,
) -> LoopResult:
    try:
        return run_file(path, config, capabilities, cancel_event)
    finally:
        capabilities.close()


def run_batch(
    paths: Sequence[str],
    config: MutantGenConfig,
    cancel_event: threading.Event | None = None,
    on_result: Callable[[LoopResult], None] | None = None,
    capabilities_factory: Callable[[MutantGenConfig], Capabilities] = build_capabilities,
) -> BatchSummary:
    """Run one loop per path, at most ``config.concurrency`` at a time.

    Provider names and loop parameters are checked before any work starts;
    problems there raise, as do two paths that would share a test file.
    Every loop gets its own capability instances, closed when it finishes.
    ``on_result`` is called from this thread as each loop finishes. The
    summary lists results in the order of ``paths``.
    """
    validate_loop_parameters(config.target_score, config.max_iterations)
    check_providers(config)
    check_isolation(paths, config)
    bundles = [capabilities_factory(config) for _ in paths]

    started = time.monotonic()
    results: list[LoopResult | None] = [None] * len(paths)
    logger.info(
        "Running %d file(s) with concurrency %d", len(paths), config.concurrency
    )

    with ThreadPoolExecutor(max_workers=config.concurrency) as pool:
        futures: dict[Future[LoopResult], int] = {
            pool.submit(_run_and_close, path, config, bundle, cancel_event): index
            for index, (path, bundle) in enumerate(zip(paths, bundles))
        }
        for future in as_completed(futures):
            index = futures[future]
            # result() re-raises anything the worker did not handle
            loop_result = future.result()
            results[index] = loop_result
            if on_result is not None:
                on_result(loop_result)

    ordered = [r for r in results if r is not None]
    return aggregate(ordered, duration_seconds=time.monotonic() - started)
