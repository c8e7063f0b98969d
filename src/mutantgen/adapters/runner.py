# Copyright (c) Syntropy Systems
"""Subprocess runner for mutation engines, with orphan prevention."""
from __future__ import annotations

import contextlib
import ctypes
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

_PR_SET_PDEATHSIG = 1


def setup_pdeathsig() -> None:
    """Ask the kernel to kill the engine if mutantgen dies first (Linux only)."""
    if sys.platform != "linux":
        return
    try:
        libc = ctypes.CDLL("libc.so.6", use_errno=True)
        libc.prctl(_PR_SET_PDEATHSIG, signal.SIGKILL)
    except (AttributeError, OSError):
        return


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of a finished engine process."""

    exit_code: int
    output: str
    timed_out: bool
    duration_seconds: float


class ProcessRunner:
    """Runs one engine command in its own session.

    Combined stdout and stderr land in ``output_path``. An engine that
    overruns its timeout has its whole process group stopped, so forked
    test workers go with it.
    """

    def __init__(
        self,
        argv: list[str],
        workdir: Path,
        output_path: Path,
        env: dict[str, str] | None = None,
    ) -> None:
        self.argv = argv
        self.workdir = workdir
        self.output_path = output_path
        self.env = {**os.environ, **(env or {})}

    def run(self, timeout: float, grace_period: float = 10.0) -> ProcessResult:
        """Run the engine to completion or until ``timeout`` seconds pass.

        Raises OSError when the command cannot be started.
        """
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        started = time.monotonic()
        with self.output_path.open("w") as sink:
            process = subprocess.Popen(  # noqa: S603
                self.argv,
                stdout=sink,
                stderr=subprocess.STDOUT,
                env=self.env,
                cwd=str(self.workdir),
                start_new_session=True,
                preexec_fn=setup_pdeathsig if sys.platform == "linux" else None,  # noqa: PLW1509
            )
            try:
                exit_code = process.wait(timeout=timeout)
                timed_out = False
            except subprocess.TimeoutExpired:
                exit_code = stop_process_group(process, grace_period)
                timed_out = True

        return ProcessResult(
            exit_code=exit_code,
            output=self.output_path.read_text(errors="replace"),
            timed_out=timed_out,
            duration_seconds=time.monotonic() - started,
        )


def stop_process_group(process: subprocess.Popen[bytes], grace_period: float) -> int:
    """SIGTERM the process group, then SIGKILL it after ``grace_period``.

    Returns the exit code, negative when the process died from a signal.
    """
    if process.poll() is not None:
        return process.returncode

    try:
        pgid = os.getpgid(process.pid)
    except ProcessLookupError:
        return process.wait()

    for sig, wait_for in ((signal.SIGTERM, grace_period), (signal.SIGKILL, 5.0)):
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(pgid, sig)
        with contextlib.suppress(subprocess.TimeoutExpired):
            return process.wait(timeout=wait_for)

    return -signal.SIGKILL
