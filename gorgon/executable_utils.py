"""Executable discovery utilities for Gorgon.

This module locates the external programs Gorgon drives (hugo, git),
honouring explicit overrides from settings before falling back to the
system PATH and the user's local bin directory.

Functions:
    find_executable: Locate an executable by override, PATH or ~/.local/bin.
    resolve_executable: Like find_executable, but falls back to the bare name.
"""

from __future__ import annotations

import shutil
from pathlib import Path


def find_executable(name: str, override: str | None = None) -> str | None:
    """Find an executable from an override, PATH or ~/.local/bin.

    An explicit override is authoritative: when it cannot be found, the
    search stops there instead of falling back to name.

    Args:
        name: Name of the executable to find (e.g., 'hugo', 'git').
        override: Optional explicit path or command name from settings.

    Returns:
        Full path to the executable if found, None otherwise.

    Examples:
        >>> find_executable('git')
        '/usr/bin/git'

        >>> find_executable('hugo', '/opt/hugo/bin/hugo')
        '/opt/hugo/bin/hugo'
    """
    if override:
        candidate = Path(override).expanduser()
        if candidate.is_file():
            return str(candidate)
        return shutil.which(override)

    found = shutil.which(name)
    if found:
        return found

    local = Path.home() / ".local" / "bin" / name
    if local.exists():
        return str(local)

    return None


def resolve_executable(name: str, override: str | None = None) -> str:
    """Return the executable to invoke for name.

    When nothing is found the override (or bare name) is returned unchanged,
    so the failure surfaces as a regular engine or fetch error at run time.
    """
    return find_executable(name, override) or override or name
