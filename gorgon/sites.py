"""Site store for Gorgon.

This module contains the registry of Hugo sites and the runtime handle used
to build them. Sites live under the site store root, one directory per site
ID, each holding content/, layout/, public/ and the site's config.toml.

Creating a site is transactional. Everything is prepared in a hidden staging
directory under the store root: the config is written, hugo scaffolds the
site, the missing layout directories are added and the config is moved into
place. Only then is the staged site renamed to its final path. Any failure
deletes the staging directory, so either a complete site exists or nothing
does.

Key classes:
- Site: Runtime handle for one site; builds, renders and bundles it.
- SiteLookup: Tagged result of a site lookup.
- SiteStore: Registry for creating and finding sites.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path

from .bundle import bundle_directory
from .config import CONFIG_FILENAME, SiteConfig
from .engines import HugoEngine
from .errors import SerializationError, SiteExistsError, StorageError
from .locks import KeyedLock
from .protocols import BuildEngine
from .themes import LookupStatus, ThemeStore
from .utils import (
    ensure_store_dir,
    is_valid_identifier,
    list_subdirectories,
    make_staging_dir,
    remove_tree,
    validate_identifier,
    write_private_file,
)

logger = logging.getLogger(__name__)

CONTENT_DIRNAME = "content"
LAYOUT_DIRNAME = "layout"
PUBLISH_DIRNAME = "public"

# Newer hugo releases scaffold hugo.toml, which would shadow config.toml.
SCAFFOLD_CONFIG_NAMES = ("hugo.toml",)


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        site_id: ID of the site that was built.
        publish_dir: Directory hugo published into.
        output: Informational output captured from the engine.
    """

    site_id: str
    publish_dir: Path
    output: str = ""


@dataclass
class RenderResult:
    """Result of rendering a site into its publish directory.

    Attributes:
        site_id: ID of the rendered site.
        publish_dir: Directory holding the published pages.
        files: Published files, relative to publish_dir, sorted.
    """

    site_id: str
    publish_dir: Path
    files: list[str] = field(default_factory=list)


class Site:
    """A Hugo site bound to one SiteConfig.

    Operations on a site hold the store's lock for its ID, so a build never
    overlaps a creation or another build of the same site.

    Attributes:
        config: The site's configuration.
        engine: BuildEngine used to build the site.
    """

    def __init__(
        self,
        config: SiteConfig,
        engine: BuildEngine,
        locks: KeyedLock | None = None,
    ):
        self.config = config
        self.engine = engine
        self._locks = locks or KeyedLock()

    def __repr__(self) -> str:
        return f"Site(id={self.id!r}, path={str(self.path)!r})"

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def path(self) -> Path:
        return Path(self.config.site_path)

    @property
    def publish_dir(self) -> Path:
        return Path(self.config.publish_dir)

    def build(self, *, cancel: threading.Event | None = None) -> BuildResult:
        """Run hugo in the site's root directory.

        Hugo discovers config.toml by convention; no config argument is passed.

        Args:
            cancel: Optional cancellation event for the engine process.

        Returns:
            BuildResult carrying the engine's informational output.

        Raises:
            EngineError: If hugo fails; its stderr is attached.
        """
        with self._locks.hold(self.id):
            result = self.engine.build(self.path, cancel=cancel)
        logger.info(result.stdout)
        return BuildResult(self.id, self.publish_dir, result.stdout)

    def render(self, *, cancel: threading.Event | None = None) -> RenderResult:
        """Generate the site's pages and publish them atomically.

        Hugo renders into a staging directory beside the publish directory.
        The previous output is swapped out only after rendering succeeds, so
        the publish directory never holds a partial render.

        Args:
            cancel: Optional cancellation event for the engine process.

        Returns:
            RenderResult listing the published files.

        Raises:
            EngineError: If hugo fails; the publish directory is left untouched.
            StorageError: If the rendered pages can't be swapped in; the
                previous output is restored.
        """
        with self._locks.hold(self.id):
            publish = self.publish_dir
            staging = publish.with_name(publish.name + ".staging")
            remove_tree(staging)
            staging.mkdir(parents=True)
            try:
                result = self.engine.build(self.path, destination=staging, cancel=cancel)
                logger.info(result.stdout)
                self._activate(staging, publish)
            finally:
                remove_tree(staging)
            files = sorted(
                p.relative_to(publish).as_posix() for p in publish.rglob("*") if p.is_file()
            )
        return RenderResult(self.id, publish, files)

    def generate_bundle(self) -> bytes:
        """Zip the generated pages.

        Returns:
            A deterministic ZIP archive of the publish directory.

        Raises:
            BundleError: If the publish directory doesn't exist.
        """
        with self._locks.hold(self.id):
            return bundle_directory(self.publish_dir)

    @staticmethod
    def _activate(staging: Path, publish: Path) -> None:
        retired = publish.with_name(publish.name + ".old")
        remove_tree(retired)
        try:
            if publish.exists():
                os.rename(publish, retired)
            try:
                os.rename(staging, publish)
            except OSError:
                if retired.exists():
                    os.rename(retired, publish)
                raise
        except OSError as exc:
            raise StorageError(publish, f"Couldn't publish rendered pages: {exc}", exc) from exc
        remove_tree(retired)


@dataclass(frozen=True)
class SiteLookup:
    """Tagged result of SiteStore.lookup.

    Attributes:
        status: FOUND, NOT_FOUND, CORRUPT or UNREADABLE.
        site: The reconstructed Site when status is FOUND.
        detail: Human-readable reason for any other status.
    """

    status: LookupStatus
    site: Site | None = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


class SiteStore:
    """Registry of Hugo sites under a root directory.

    There is no in-memory site cache: find() and lookup() read the site's
    directory and config.toml every time, so the filesystem is the single
    source of truth.

    Attributes:
        root: Site store root directory.
        theme_store: ThemeStore used to resolve site themes.
        engine: BuildEngine used to scaffold and build sites.
    """

    def __init__(
        self,
        root: Path,
        theme_store: ThemeStore,
        engine: BuildEngine | None = None,
        locks: KeyedLock | None = None,
    ):
        """Initialize the site store, creating the root if needed.

        Args:
            root: Site store root directory.
            theme_store: ThemeStore used to resolve site themes.
            engine: Optional build engine; defaults to HugoEngine.
            locks: Optional per-site lock family to share.
        """
        self.root = Path(root)
        self.theme_store = theme_store
        self.engine = engine or HugoEngine()
        self._locks = locks or KeyedLock()
        ensure_store_dir(self.root, "Site store")

    def site_path(self, site_id: str) -> Path:
        """Return the root directory a site with site_id lives in."""
        return self.root / validate_identifier(site_id)

    def list_ids(self) -> list[str]:
        """Return the IDs of all site directories, sorted."""
        return [name for name in list_subdirectories(self.root) if is_valid_identifier(name)]

    def create(
        self, config: SiteConfig, *, cancel: threading.Event | None = None
    ) -> Site:
        """Create a new site.

        Args:
            config: Site description. Derived layout fields in it are ignored
                and recomputed; the caller's object is not modified.
            cancel: Optional cancellation event for the fetch and scaffold processes.

        Returns:
            Site wrapping the final configuration.

        Raises:
            InvalidIdentifierError: If the site ID or theme name is not valid.
            SiteExistsError: If the site already exists.
            ThemeUnavailableError: If the theme is absent and has no URL.
            FetchError: If fetching the theme fails.
            SerializationError: If the config can't be written or relocated.
            EngineError: If hugo fails to scaffold the site.
            StorageError: If the site layout can't be provisioned or moved into place.
        """
        site_id = validate_identifier(config.id)
        with self._locks.hold(site_id):
            target = self.site_path(site_id)
            if target.exists():
                raise SiteExistsError(site_id, target)

            self.theme_store.ensure(config.theme, config.theme_url, cancel=cancel)

            final = replace(config)
            self._apply_layout(final, target)

            staging = make_staging_dir(self.root, site_id)
            try:
                staged_config = staging / f"{site_id}.toml"
                self._write_config(final, staged_config)

                logger.info("Scaffolding site '%s'", site_id)
                result = self.engine.scaffold(staged_config, site_id, staging, cancel=cancel)
                logger.info("Output:")
                logger.info(result.stdout)

                staged_site = staging / site_id
                self._provision_layout(staged_site)
                self._relocate_config(staged_config, staged_site / CONFIG_FILENAME)
                self._promote(site_id, staged_site, target)
            finally:
                remove_tree(staging)

        logger.info("Created site '%s' at %s", site_id, target)
        return Site(final, self.engine, self._locks)

    def find(self, site_id: str) -> Site | None:
        """Return the site associated with the given ID.

        Absence, an unreadable directory and an undecodable config all give
        None; use lookup() to tell them apart.

        Args:
            site_id: Site ID.

        Returns:
            The reconstructed Site, or None.
        """
        return self.lookup(site_id).site

    def lookup(self, site_id: str) -> SiteLookup:
        """Look up a site and report why it is unusable when it is.

        The derived layout fields of the returned config are recomputed from
        the discovered directory; values stored in config.toml are not trusted.

        Args:
            site_id: Site ID.

        Returns:
            SiteLookup with status FOUND, NOT_FOUND, CORRUPT or UNREADABLE.
        """
        if not is_valid_identifier(site_id):
            logger.error("Invalid site ID %r", site_id)
            return SiteLookup(LookupStatus.NOT_FOUND, detail=f"invalid site ID {site_id!r}")

        with self._locks.hold(site_id):
            path = self.root / site_id
            if not path.is_dir():
                logger.error("Site path '%s' doesn't exist", path)
                return SiteLookup(LookupStatus.NOT_FOUND, detail=f"{path} doesn't exist")

            config_path = path / CONFIG_FILENAME
            try:
                text = config_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                logger.error("Site '%s' has no %s", site_id, CONFIG_FILENAME)
                return SiteLookup(LookupStatus.CORRUPT, detail=f"{config_path} is missing")
            except UnicodeDecodeError as exc:
                logger.error("Couldn't decode TOML! %s", exc)
                return SiteLookup(LookupStatus.CORRUPT, detail=str(exc))
            except OSError as exc:
                logger.error("Couldn't read %s: %s", config_path, exc)
                return SiteLookup(LookupStatus.UNREADABLE, detail=str(exc))

            try:
                config = SiteConfig.from_toml(text, id=site_id)
            except ValueError as exc:
                logger.error("Couldn't decode TOML! %s", exc)
                return SiteLookup(LookupStatus.CORRUPT, detail=str(exc))

            self._apply_layout(config, path)
            return SiteLookup(LookupStatus.FOUND, Site(config, self.engine, self._locks))

    def _apply_layout(self, config: SiteConfig, site_path: Path) -> None:
        config.site_path = str(site_path)
        config.themes_dir = str(self.theme_store.root)
        config.content_dir = str(site_path / CONTENT_DIRNAME)
        config.layout_dir = str(site_path / LAYOUT_DIRNAME)
        config.publish_dir = str(site_path / PUBLISH_DIRNAME)

    @staticmethod
    def _write_config(config: SiteConfig, path: Path) -> None:
        try:
            payload = config.to_toml().encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializationError(path, f"Couldn't encode config: {exc}", exc) from exc
        try:
            write_private_file(path, payload)
        except OSError as exc:
            raise SerializationError(path, f"Couldn't write config: {exc}", exc) from exc

    @staticmethod
    def _provision_layout(staged_site: Path) -> None:
        try:
            for dirname in (CONTENT_DIRNAME, LAYOUT_DIRNAME, PUBLISH_DIRNAME):
                (staged_site / dirname).mkdir(parents=True, exist_ok=True)
            for name in SCAFFOLD_CONFIG_NAMES:
                (staged_site / name).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(staged_site, f"Couldn't provision site layout: {exc}", exc) from exc

    @staticmethod
    def _relocate_config(source: Path, dest: Path) -> None:
        try:
            os.replace(source, dest)
        except OSError as exc:
            raise SerializationError(dest, f"Couldn't move config into place: {exc}", exc) from exc

    @staticmethod
    def _promote(site_id: str, staged_site: Path, target: Path) -> None:
        try:
            os.rename(staged_site, target)
        except OSError as exc:
            if target.exists():
                raise SiteExistsError(site_id, target) from exc
            raise StorageError(target, f"Couldn't move site into place: {exc}", exc) from exc
