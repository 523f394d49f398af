"""Protocol definitions for Gorgon.

This module defines the interfaces (protocols) the stores depend on, so the
external tools they drive can be swapped for fakes in tests or for other
implementations (a remote build worker, a different VCS) without touching
the store logic.

These protocols enable:
- Loose coupling between the stores and the processes they start
- Easy testing through fake runners that record argument contracts
- Extensibility without modifying existing code
"""

from __future__ import annotations

import threading
from abc import abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .runner import CommandResult


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for invoking an external program.

    Implementations capture standard output and standard error separately
    and report the exit status; they never raise for a non-zero exit.
    """

    @abstractmethod
    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program and arguments.
            cwd: Working directory for the process.
            timeout: Seconds after which the process is killed.
            cancel: Event that, once set, kills the process.

        Returns:
            CommandResult with the exit status and captured streams.

        Raises:
            ProcessCancelled: If cancel was set before the process finished.
            ProcessTimeout: If the timeout elapsed.
        """
        ...


@runtime_checkable
class ThemeFetcher(Protocol):
    """Protocol for retrieving a theme from a remote source."""

    @abstractmethod
    def fetch(self, url: str, dest: Path, *, cancel: threading.Event | None = None) -> None:
        """Populate dest with the resource found at url.

        Raises:
            FetchError: If the resource could not be retrieved.
        """
        ...


@runtime_checkable
class BuildEngine(Protocol):
    """Protocol for the static-site build engine."""

    @abstractmethod
    def scaffold(
        self,
        config_path: Path,
        site_id: str,
        cwd: Path,
        *,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Create a new site skeleton named site_id inside cwd.

        Raises:
            EngineError: If the engine reports a failure.
        """
        ...

    @abstractmethod
    def build(
        self,
        site_path: Path,
        destination: Path | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Build the site rooted at site_path.

        The engine discovers the site's config by convention. When
        destination is given, output goes there instead of the configured
        publish directory.

        Raises:
            EngineError: If the engine reports a failure.
        """
        ...
