"""Configuration for Gorgon.

This module holds the two configuration layers Gorgon deals with:

- SiteConfig: the declarative description of one Hugo site, persisted as the
  site's config.toml and consumed by hugo itself.
- Settings: process-wide settings (store roots, tool binaries, limits) loaded
  from gorgon.yaml and GORGON_* environment variables.

Key functions:
- load_settings: Loads Settings with defaults, gorgon.yaml and env overrides applied.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomli_w
import yaml

if TYPE_CHECKING:
    from .sites import SiteStore
    from .themes import ThemeStore

CONFIG_FILENAME = "config.toml"
SETTINGS_FILENAME = "gorgon.yaml"

# Attribute name -> TOML key, in the order hugo sees them.
PERSISTED_FIELDS = (
    ("themes_dir", "themesDir"),
    ("content_dir", "contentDir"),
    ("layout_dir", "layoutDir"),
    ("publish_dir", "publishDir"),
    ("base_url", "baseURL"),
    ("language_code", "languageCode"),
    ("title", "title"),
    ("theme", "theme"),
)


@dataclass
class SiteConfig:
    """Hugo configuration for one site.

    Identity, theme URL and site_path are process-local and never written to
    config.toml. The four directory fields and site_path are owned by the
    SiteStore, which overwrites them on create and on lookup.

    Attributes:
        id: Unique, filesystem-safe site identifier.
        theme: Name of the theme the site uses.
        theme_url: Remote source for the theme, used only when it is absent locally.
        base_url: Hugo baseURL.
        language_code: Hugo languageCode.
        title: Site title.
        themes_dir: Theme store root.
        content_dir: Site content directory.
        layout_dir: Site layout directory.
        publish_dir: Directory hugo publishes into.
        site_path: Root working directory of the site.
    """

    id: str = ""
    theme: str = ""
    theme_url: str = ""
    base_url: str = ""
    language_code: str = ""
    title: str = ""
    themes_dir: str = ""
    content_dir: str = ""
    layout_dir: str = ""
    publish_dir: str = ""
    site_path: str = ""

    def to_toml(self) -> str:
        """Serialize the persisted fields as TOML."""
        return tomli_w.dumps(self.persisted())

    def persisted(self) -> dict[str, str]:
        """Return the persisted fields keyed by their TOML names."""
        return {key: getattr(self, attr) for attr, key in PERSISTED_FIELDS}

    @classmethod
    def from_toml(cls, text: str, **local: str) -> SiteConfig:
        """Build a SiteConfig from config.toml content.

        Unknown keys (anything else hugo understands) are ignored and missing
        keys default to empty strings.

        Args:
            text: TOML document.
            **local: Process-local fields (id, theme_url, site_path) to set.

        Returns:
            The decoded SiteConfig.

        Raises:
            tomllib.TOMLDecodeError: If text is not valid TOML.
            ValueError: If a persisted field is not a string.
        """
        data = tomllib.loads(text)
        values: dict[str, Any] = {}
        for attr, key in PERSISTED_FIELDS:
            value = data.get(key, "")
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string, got {type(value).__name__}")
            values[attr] = value
        values.update(local)
        return cls(**values)


DEFAULT_SETTINGS: dict[str, Any] = {
    "sites_root": "/tmp/sites",
    "themes_root": "/tmp/themes",
    "hugo_bin": "",
    "git_bin": "",
    "max_processes": 4,
    "process_timeout": None,
}

ENV_OVERRIDES = {
    "GORGON_SITES_ROOT": "sites_root",
    "GORGON_THEMES_ROOT": "themes_root",
    "GORGON_HUGO_BIN": "hugo_bin",
    "GORGON_GIT_BIN": "git_bin",
    "GORGON_MAX_PROCESSES": "max_processes",
    "GORGON_PROCESS_TIMEOUT": "process_timeout",
}


@dataclass
class Settings:
    """Process-wide Gorgon settings.

    Attributes:
        sites_root: Site store root.
        themes_root: Theme store root.
        hugo_bin: Explicit hugo executable, or empty to search PATH.
        git_bin: Explicit git executable, or empty to search PATH.
        max_processes: Limit on concurrently running external processes.
        process_timeout: Seconds before an external process is killed, or None.
    """

    sites_root: Path = field(default_factory=lambda: Path(DEFAULT_SETTINGS["sites_root"]))
    themes_root: Path = field(default_factory=lambda: Path(DEFAULT_SETTINGS["themes_root"]))
    hugo_bin: str = ""
    git_bin: str = ""
    max_processes: int = 4
    process_timeout: float | None = None

    def open_stores(self) -> tuple[ThemeStore, SiteStore]:
        """Wire a runner, the tool adapters and both stores from these settings.

        Returns:
            Tuple of (theme store, site store) sharing one process runner.
        """
        from .engines import GitFetcher, HugoEngine
        from .executable_utils import resolve_executable
        from .runner import SubprocessRunner
        from .sites import SiteStore
        from .themes import ThemeStore

        runner = SubprocessRunner(max_processes=self.max_processes)
        fetcher = GitFetcher(
            runner, resolve_executable("git", self.git_bin), self.process_timeout
        )
        engine = HugoEngine(
            runner, resolve_executable("hugo", self.hugo_bin), self.process_timeout
        )
        theme_store = ThemeStore(self.themes_root, fetcher=fetcher)
        site_store = SiteStore(self.sites_root, theme_store, engine=engine)
        return theme_store, site_store


def load_settings(
    project_root: Path | None = None, environ: dict[str, str] | None = None
) -> Settings:
    """Load Gorgon settings.

    Defaults are overlaid with gorgon.yaml from project_root (when present)
    and then with GORGON_* environment variables.

    Args:
        project_root: Directory holding gorgon.yaml; defaults to the cwd.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        Settings with all overrides applied.

    Raises:
        ValueError: If a numeric setting cannot be parsed.
    """
    root = project_root or Path.cwd()
    env = os.environ if environ is None else environ
    raw = DEFAULT_SETTINGS.copy()

    settings_path = root / SETTINGS_FILENAME
    if settings_path.exists():
        with open(settings_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                raw.update({k: v for k, v in loaded.items() if k in DEFAULT_SETTINGS})

    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            raw[key] = value

    timeout = raw.get("process_timeout")
    return Settings(
        sites_root=Path(str(raw["sites_root"])).expanduser(),
        themes_root=Path(str(raw["themes_root"])).expanduser(),
        hugo_bin=str(raw.get("hugo_bin") or ""),
        git_bin=str(raw.get("git_bin") or ""),
        max_processes=int(raw.get("max_processes") or 1),
        process_timeout=float(timeout) if timeout not in (None, "") else None,
    )
