"""Theme store for Gorgon.

Themes live as directories under the theme store root; a theme exists when a
directory with its name exists. Missing themes can be fetched from a remote
source through a ThemeFetcher. Fetches go to a hidden staging directory and
are renamed into place only once they succeed, so a failed fetch never leaves
a half-populated theme behind.

Key classes:
- Theme: Marker for a theme present on disk.
- ThemeLookup: Tagged result distinguishing absence from unreadable state.
- ThemeStore: Registry for looking up and fetching themes.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .engines import GitFetcher
from .errors import FetchError, ThemeUnavailableError
from .locks import KeyedLock
from .protocols import ThemeFetcher
from .utils import (
    ensure_store_dir,
    is_valid_identifier,
    list_subdirectories,
    make_staging_dir,
    remove_tree,
    validate_identifier,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Theme:
    """A theme whose assets exist in the theme store.

    Attributes:
        name: Theme name, also its directory name.
        path: Directory holding the theme's assets.
    """

    name: str
    path: Path


class LookupStatus(str, Enum):
    """Outcome of a store lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class ThemeLookup:
    status: LookupStatus
    theme: Theme | None = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


class ThemeStore:
    """Registry of themes available under a root directory.

    The themes mapping is filled by scanning the root at construction and is
    updated by fetch() and refresh(). It is informational only: find(),
    lookup() and ensure() always check the filesystem, so out-of-band
    changes are seen immediately.

    Attributes:
        root: Theme store root directory.
        themes: Mapping from theme name to Theme, as of the last scan or fetch.
        fetcher: ThemeFetcher used to retrieve missing themes.
    """

    def __init__(
        self,
        root: Path,
        fetcher: ThemeFetcher | None = None,
        locks: KeyedLock | None = None,
    ):
        """Initialize the theme store, creating the root if needed.

        Args:
            root: Theme store root directory.
            fetcher: Optional fetcher; defaults to GitFetcher.
            locks: Optional per-theme lock family to share.
        """
        logger.info("Initializing the theme store.")
        self.root = Path(root)
        self.fetcher = fetcher or GitFetcher()
        self._locks = locks or KeyedLock()
        self._mapping_lock = threading.Lock()
        self.themes: dict[str, Theme] = {}
        ensure_store_dir(self.root, "Theme store")
        self.refresh()
        if not self.themes:
            logger.info("No themes found.")

    def refresh(self) -> dict[str, Theme]:
        """Rescan the root and replace the themes mapping."""
        scanned = {name: Theme(name, self.root / name) for name in self.names()}
        with self._mapping_lock:
            self.themes = scanned
        return scanned

    def names(self) -> list[str]:
        """Return the names of the themes currently on disk."""
        return [name for name in list_subdirectories(self.root) if is_valid_identifier(name)]

    def find(self, name: str) -> Theme | None:
        """Find a theme by name.

        Any stat error, including permission problems, is treated as absence.

        Args:
            name: Theme name.

        Returns:
            The Theme if its directory exists, None otherwise.
        """
        result = self.lookup(name)
        return result.theme if result.found else None

    def lookup(self, name: str) -> ThemeLookup:
        """Look up a theme, telling absence apart from unreadable state.

        Args:
            name: Theme name.

        Returns:
            ThemeLookup with status FOUND, NOT_FOUND or UNREADABLE.
        """
        if not is_valid_identifier(name):
            return ThemeLookup(LookupStatus.NOT_FOUND, detail=f"invalid theme name {name!r}")
        path = self.root / name
        try:
            if not path.is_dir():
                return ThemeLookup(LookupStatus.NOT_FOUND, detail=f"{path} is not a directory")
            os.listdir(path)
        except OSError as exc:
            return ThemeLookup(LookupStatus.UNREADABLE, detail=str(exc))
        return ThemeLookup(LookupStatus.FOUND, Theme(name, path))

    def fetch(
        self, name: str, url: str, *, cancel: threading.Event | None = None
    ) -> Theme:
        """Fetch a theme from url into the store.

        The fetcher writes into a hidden staging directory which is renamed to
        root/name only after it succeeds. On failure the staging directory is
        removed and the store root is left as it was.

        Args:
            name: Theme name.
            url: Remote source of the theme.
            cancel: Optional cancellation event for the fetch process.

        Returns:
            The fetched Theme.

        Raises:
            InvalidIdentifierError: If name is not a valid theme name.
            FetchError: If the fetcher fails or the clone can't be moved to
                root/name.
        """
        validate_identifier(name, "theme")
        with self._locks.hold(name):
            target = self.root / name
            staging = make_staging_dir(self.root, name)
            try:
                clone_path = staging / name
                self.fetcher.fetch(url, clone_path, cancel=cancel)
                try:
                    os.rename(clone_path, target)
                except OSError as exc:
                    raise FetchError(name, url, f"Couldn't move theme into place: {exc}") from exc
            finally:
                remove_tree(staging)
            theme = Theme(name, target)
            with self._mapping_lock:
                self.themes[name] = theme
            return theme

    def ensure(
        self, name: str, url: str = "", *, cancel: threading.Event | None = None
    ) -> Theme:
        """Return a theme, fetching it first if it is absent locally.

        Lookup and fetch happen under the theme's lock, so concurrent callers
        never fetch the same theme twice.

        Args:
            name: Theme name.
            url: Remote source used only if the theme is absent.
            cancel: Optional cancellation event for the fetch process.

        Returns:
            The local Theme.

        Raises:
            ThemeUnavailableError: If the theme is absent and url is empty.
            FetchError: If fetching fails.
        """
        validate_identifier(name, "theme")
        with self._locks.hold(name):
            theme = self.find(name)
            if theme is not None:
                return theme
            logger.error("Theme '%s' doesn't exist!", name)
            if not url:
                logger.error("No theme URL specified, aborting!")
                raise ThemeUnavailableError(name)
            logger.info("Fetching theme '%s'", name)
            try:
                theme = self.fetch(name, url, cancel=cancel)
            except FetchError as exc:
                logger.info("Couldn't fetch theme: %s", exc)
                raise
            logger.info("Done fetching theme.")
            return theme
