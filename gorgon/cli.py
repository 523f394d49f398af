"""Command-line interface for Gorgon.

This module defines the CLI commands using Click framework.
It provides commands for creating sites, building, rendering and bundling them,
and inspecting the site and theme stores.

Commands:
- create: Create a new site, fetching its theme if needed.
- build: Build a site with hugo.
- render: Render a site into its publish directory.
- bundle: Write a zip archive of a site's published pages.
- show: Show a site's lookup status and configuration.
- sites: List sites in the site store.
- themes: List themes in the theme store.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
import questionary

from . import __version__
from .config import Settings, SiteConfig, load_settings
from .errors import GorgonError
from .sites import SiteStore
from .themes import ThemeStore


@click.group()
@click.version_option(version=__version__, prog_name="gorgon")
@click.option(
    "--sites-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Site store root (overrides gorgon.yaml / GORGON_SITES_ROOT)",
)
@click.option(
    "--themes-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Theme store root (overrides gorgon.yaml / GORGON_THEMES_ROOT)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, sites_root: Path | None, themes_root: Path | None, verbose: bool):
    """Gorgon Hugo site manager."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_settings(Path.cwd())
    except ValueError as exc:
        raise click.ClickException(f"Invalid settings: {exc}") from None
    if sites_root is not None:
        settings.sites_root = sites_root
    if themes_root is not None:
        settings.themes_root = themes_root
    ctx.obj = settings


@cli.command()
@click.argument("site_id")
@click.option("--theme", help="Theme name")
@click.option("--theme-url", default="", help="Repository to fetch the theme from if it is missing")
@click.option("--base-url", default="http://localhost", show_default=True, help="Site baseURL")
@click.option("--language-code", default="en-us", show_default=True, help="Site languageCode")
@click.option("--title", help="Site title")
@click.pass_obj
def create(
    settings: Settings,
    site_id: str,
    theme: str | None,
    theme_url: str,
    base_url: str,
    language_code: str,
    title: str | None,
):
    """Create a new site."""
    if not theme:
        theme = _ask("Theme name:")
    if not title:
        title = _ask("Site title:")

    _, site_store = _open_stores(settings)
    config = SiteConfig(
        id=site_id,
        theme=theme,
        theme_url=theme_url,
        base_url=base_url,
        language_code=language_code,
        title=title,
    )
    try:
        site = site_store.create(config)
    except GorgonError as exc:
        _fail("Create failed:", exc)
    click.echo(f"Created site '{site.id}' at {site.path}")


@cli.command()
@click.argument("site_id")
@click.pass_obj
def build(settings: Settings, site_id: str):
    """Build a site with hugo."""
    site = _require_site(settings, site_id)
    try:
        result = site.build()
    except GorgonError as exc:
        _fail("Build failed:", exc)
    click.echo(f"Built site '{result.site_id}' into {result.publish_dir}")


@cli.command()
@click.argument("site_id")
@click.pass_obj
def render(settings: Settings, site_id: str):
    """Render a site into its publish directory."""
    site = _require_site(settings, site_id)
    try:
        result = site.render()
    except GorgonError as exc:
        _fail("Render failed:", exc)
    click.echo(f"Rendered {len(result.files)} files into {result.publish_dir}")


@cli.command()
@click.argument("site_id")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Archive path (defaults to <site_id>.zip)",
)
@click.pass_obj
def bundle(settings: Settings, site_id: str, output: Path | None):
    """Write a zip archive of a site's published pages."""
    site = _require_site(settings, site_id)
    try:
        payload = site.generate_bundle()
    except GorgonError as exc:
        _fail("Bundle failed:", exc)
    target = output or Path(f"{site_id}.zip")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)
    click.echo(f"Wrote {len(payload)} bytes to {target}")


@cli.command()
@click.argument("site_id")
@click.pass_obj
def show(settings: Settings, site_id: str):
    """Show a site's lookup status and configuration."""
    _, site_store = _open_stores(settings)
    result = site_store.lookup(site_id)
    click.echo(f"status: {result.status.value}")
    if not result.found:
        click.echo(f"detail: {result.detail}")
        raise SystemExit(1)
    click.echo(f"path: {result.site.path}")
    click.echo(result.site.config.to_toml().rstrip())


@cli.command()
@click.pass_obj
def sites(settings: Settings):
    """List sites in the site store."""
    _, site_store = _open_stores(settings)
    for site_id in site_store.list_ids():
        click.echo(site_id)


@cli.command()
@click.pass_obj
def themes(settings: Settings):
    """List themes in the theme store."""
    theme_store, _ = _open_stores(settings)
    for name in theme_store.names():
        click.echo(name)


def _open_stores(settings: Settings) -> tuple[ThemeStore, SiteStore]:
    return settings.open_stores()


def _require_site(settings: Settings, site_id: str):
    _, site_store = _open_stores(settings)
    site = site_store.find(site_id)
    if site is None:
        raise click.ClickException(f"Site '{site_id}' not found in {site_store.root}")
    return site


def _fail(header: str, exc: GorgonError):
    """Print a failure with its detail and exit with status 1."""
    click.echo(click.style(header, fg="red", bold=True), err=True)
    click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
    stderr = getattr(exc, "stderr", "")
    if stderr and stderr.strip() not in str(exc):
        click.echo(click.style(f"  Output: {stderr.strip()}", fg="yellow"), err=True)
    raise SystemExit(1) from None


def _ask(prompt: str) -> str:
    answer = questionary.text(
        prompt,
        validate=lambda x: len(x.strip()) > 0 or "Value cannot be empty",
        style=_questionary_style(),
    ).ask()
    if answer is None:
        raise click.Abort()
    return answer.strip()


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
