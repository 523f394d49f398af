"""Exception types for Gorgon.

Every failure the store layer reports derives from GorgonError, so callers can
catch the whole family at the edge (the CLI does) or pick out specific cases.

Key classes:
- ThemeUnavailableError: Theme missing locally and no URL to fetch it from.
- FetchError: The remote fetch tool failed.
- SerializationError: A site config could not be encoded, written or moved.
- StorageError: A site or publish directory could not be laid out.
- EngineError: The build engine returned a failure.
- InvalidIdentifierError: A site ID or theme name is not filesystem-safe.
- SiteExistsError: A site with the requested ID already exists.
- BundleError: A bundle could not be produced.
- ProcessCancelled / ProcessTimeout: An external process was stopped early.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class GorgonError(Exception):
    """Base class for all Gorgon errors."""


class ThemeUnavailableError(GorgonError):
    """Raised when a theme is absent locally and there is no source to fetch it from.

    Attributes:
        theme: Name of the missing theme.
    """

    def __init__(self, theme: str):
        self.theme = theme
        super().__init__(
            f"Theme '{theme}' doesn't exist and no theme URL was given to fetch it from"
        )


class FetchError(GorgonError):
    """Error fetching a theme from a remote source.

    Attributes:
        theme: Name of the theme being fetched.
        url: Source locator passed to the fetch tool.
        stderr: Diagnostic output captured from the fetch tool.
    """

    def __init__(self, theme: str, url: str, stderr: str = ""):
        self.theme = theme
        self.url = url
        self.stderr = stderr
        detail = stderr.strip() or "fetch tool failed"
        super().__init__(f"Couldn't fetch theme '{theme}' from {url}: {detail}")


class SerializationError(GorgonError):
    """Error encoding, writing or relocating a persisted site config.

    Attributes:
        path: Path of the config file involved.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.path = path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{path}: {message}")


class StorageError(GorgonError):
    """Error laying out a site or its published pages on disk.

    Attributes:
        path: Directory involved.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.path = path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{path}: {message}")


class EngineError(GorgonError):
    """The build engine exited with a failure.

    Attributes:
        args: Command line that was executed.
        returncode: Exit status of the process.
        stdout: Captured standard output.
        stderr: Captured standard error, the diagnostic detail.
    """

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(self.args_list)} failed: {detail}")


class InvalidIdentifierError(GorgonError, ValueError):
    """A site ID or theme name that cannot be used as a path component.

    Attributes:
        value: The rejected identifier.
        kind: What the identifier names ("site" or "theme").
    """

    def __init__(self, value: str, kind: str = "site"):
        self.value = value
        self.kind = kind
        super().__init__(f"Invalid {kind} identifier: {value!r}")


class SiteExistsError(GorgonError):
    """Raised by create when the site directory is already present."""

    def __init__(self, site_id: str, path: Path):
        self.site_id = site_id
        self.path = path
        super().__init__(f"Site '{site_id}' already exists at {path}")


class BundleError(GorgonError):
    """Raised when a site's publish directory can't be bundled."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class ProcessCancelled(GorgonError):
    """An external process was killed because the caller cancelled it."""

    def __init__(self, args: Sequence[str]):
        self.args_list = list(args)
        super().__init__(f"{' '.join(self.args_list)} was cancelled")


class ProcessTimeout(GorgonError):
    """An external process was killed after exceeding its timeout."""

    def __init__(self, args: Sequence[str], timeout: float):
        self.args_list = list(args)
        self.timeout = timeout
        super().__init__(f"{' '.join(self.args_list)} timed out after {timeout:g}s")
