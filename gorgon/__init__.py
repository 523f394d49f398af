"""Gorgon Hugo site manager.

This package manages a multi-tenant collection of Hugo sites, each bound to a theme.
It keeps an on-disk registry of sites and themes, fetches missing themes from remote
repositories, provisions new sites through the Hugo CLI and drives their builds.

The main entry point is the CLI module, which provides commands for creating sites,
building, rendering and bundling them, and listing the stores.

Architecture:
- Stores (themes, sites) own their directory layout and treat the filesystem as truth.
- External tools (hugo, git) run behind a CommandRunner protocol so they can be replaced.
- Operations on one site or theme are serialized with per-key locks.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
