"""External tool adapters for Gorgon.

This module holds the argument contracts for the two external programs
Gorgon drives. Each adapter turns a failed CommandResult into the matching
error type, keeping the captured diagnostic output attached.

Key classes:
- HugoEngine: BuildEngine implementation for the hugo CLI.
- GitFetcher: ThemeFetcher implementation for `git clone`.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .errors import EngineError, FetchError
from .protocols import CommandRunner
from .runner import CommandResult, SubprocessRunner

logger = logging.getLogger(__name__)


class HugoEngine:
    """Drives the hugo CLI.

    Attributes:
        runner: CommandRunner used to start hugo.
        binary: Executable to invoke.
        timeout: Optional per-invocation timeout in seconds.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        binary: str = "hugo",
        timeout: float | None = None,
    ):
        self.runner = runner or SubprocessRunner()
        self.binary = binary
        self.timeout = timeout

    def scaffold(
        self,
        config_path: Path,
        site_id: str,
        cwd: Path,
        *,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Run `hugo new site <id> --config <path>` inside cwd.

        Args:
            config_path: Path of the staged site config.
            site_id: Name of the directory hugo creates inside cwd.
            cwd: Working directory.
            cancel: Optional cancellation event.

        Returns:
            The successful CommandResult.

        Raises:
            EngineError: If hugo exits with a failure.
        """
        args = [self.binary, "new", "site", site_id, "--config", str(config_path)]
        return self._invoke(args, cwd, cancel)

    def build(
        self,
        site_path: Path,
        destination: Path | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Run `hugo` in site_path, optionally redirecting output to destination."""
        args = [self.binary]
        if destination is not None:
            args.extend(["--destination", str(destination)])
        return self._invoke(args, site_path, cancel)

    def _invoke(
        self, args: list[str], cwd: Path, cancel: threading.Event | None
    ) -> CommandResult:
        result = self.runner.run(args, cwd, timeout=self.timeout, cancel=cancel)
        if not result.ok:
            logger.error(result.stderr)
            raise EngineError(result.args, result.returncode, result.stdout, result.stderr)
        return result


class GitFetcher:
    """Fetches themes with `git clone <url> <dest>`."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        binary: str = "git",
        timeout: float | None = None,
    ):
        self.runner = runner or SubprocessRunner()
        self.binary = binary
        self.timeout = timeout

    def fetch(self, url: str, dest: Path, *, cancel: threading.Event | None = None) -> None:
        """Clone url into dest.

        Args:
            url: Repository to clone.
            dest: Target directory; must not exist yet.
            cancel: Optional cancellation event.

        Raises:
            FetchError: If git exits with a failure.
        """
        args = [self.binary, "clone", url, str(dest)]
        result = self.runner.run(args, dest.parent, timeout=self.timeout, cancel=cancel)
        if not result.ok:
            logger.error(result.stderr)
            raise FetchError(dest.name, url, result.stderr)
