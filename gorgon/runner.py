"""Subprocess invocation for Gorgon.

Every external program Gorgon starts (hugo, git) goes through a runner. The
default SubprocessRunner bounds how many processes run at once, captures
stdout and stderr separately, and kills its child on timeout, cancellation,
or any early return of the calling code.

Key classes:
- CommandResult: Exit status and captured output of one invocation.
- SubprocessRunner: CommandRunner implementation backed by subprocess.Popen.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import ProcessCancelled, ProcessTimeout

logger = logging.getLogger(__name__)

# Conventional shell status for "command not found".
NOT_FOUND_STATUS = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command.

    Attributes:
        args: Command line that was executed.
        returncode: Exit status of the process.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class SubprocessRunner:
    """Runs commands with subprocess, limiting how many run concurrently.

    Attributes:
        max_processes: Upper bound on simultaneously running children.
        default_timeout: Timeout applied when run() is not given one.
        poll_interval: Seconds between cancellation checks.
    """

    def __init__(
        self,
        max_processes: int = 4,
        default_timeout: float | None = None,
        poll_interval: float = 0.1,
    ):
        self.max_processes = max(1, int(max_processes))
        self.default_timeout = default_timeout
        self.poll_interval = poll_interval
        self._slots = threading.BoundedSemaphore(self.max_processes)

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Run a command and wait for it, honouring timeout and cancellation.

        Args:
            args: Program and arguments.
            cwd: Working directory for the process.
            timeout: Seconds after which the process is killed; defaults to
                default_timeout.
            cancel: Event that, once set, kills the process.

        Returns:
            CommandResult. A program that cannot be started yields return
            code 127 with the OS error as stderr.

        Raises:
            ProcessCancelled: If cancel was set before the process finished.
            ProcessTimeout: If the timeout elapsed.
        """
        argv = tuple(str(a) for a in args)
        limit = timeout if timeout is not None else self.default_timeout
        with self._slots:
            if cancel is not None and cancel.is_set():
                raise ProcessCancelled(argv)
            logger.debug("Running %s in %s", " ".join(argv), cwd)
            try:
                proc = subprocess.Popen(
                    argv,
                    cwd=str(cwd),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                )
            except OSError as exc:
                return CommandResult(argv, NOT_FOUND_STATUS, "", str(exc))
            try:
                stdout, stderr = self._wait(proc, argv, limit, cancel)
            finally:
                if proc.poll() is None:
                    proc.kill()
                    proc.communicate()
        return CommandResult(argv, proc.returncode, stdout, stderr)

    def _wait(
        self,
        proc: subprocess.Popen,
        argv: tuple[str, ...],
        limit: float | None,
        cancel: threading.Event | None,
    ) -> tuple[str, str]:
        deadline = time.monotonic() + limit if limit is not None else None
        while True:
            try:
                return proc.communicate(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                pass
            if cancel is not None and cancel.is_set():
                logger.warning("Cancelling %s", " ".join(argv))
                raise ProcessCancelled(argv)
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Timed out after %ss: %s", limit, " ".join(argv))
                raise ProcessTimeout(argv, limit)
