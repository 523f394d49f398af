"""Utility functions for Gorgon.

This module contains the filesystem helpers shared by the theme and site stores:
identifier validation, private directory creation, staging directories and
directory scans.

Key functions:
    validate_identifier: Reject IDs and names that are not safe path components.
    is_valid_identifier: Boolean form of validate_identifier.
    ensure_store_dir: Create a store root with owner-only permissions.
    make_staging_dir: Create a hidden scratch directory inside a store root.
    remove_tree: Delete a directory tree, tolerating stubborn entries.
    list_subdirectories: Names of visible immediate subdirectories.
    write_private_file: Write bytes to a file readable only by its owner.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from .errors import InvalidIdentifierError

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")

PRIVATE_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


def validate_identifier(value: str, kind: str = "site") -> str:
    """Ensure a site ID or theme name can be used as a single path component.

    Identifiers must start with a letter or digit and contain only letters,
    digits, dots, hyphens and underscores (at most 128 characters). This rules
    out path separators, parent references and hidden names, which are
    reserved for staging directories.

    Args:
        value: Identifier to check.
        kind: What the identifier names, used in the error message.

    Returns:
        The identifier, unchanged.

    Raises:
        InvalidIdentifierError: If the identifier is not acceptable.

    Examples:
        >>> validate_identifier("acme")
        'acme'

        >>> validate_identifier("../etc")
        Traceback (most recent call last):
        ...
        gorgon.errors.InvalidIdentifierError: Invalid site identifier: '../etc'
    """
    if not isinstance(value, str) or not IDENTIFIER_RE.match(value) or ".." in value:
        raise InvalidIdentifierError(value, kind)
    return value


def is_valid_identifier(value: str) -> bool:
    """Return True if value would pass validate_identifier."""
    return isinstance(value, str) and bool(IDENTIFIER_RE.match(value)) and ".." not in value


def ensure_store_dir(path: Path, label: str = "Store") -> bool:
    """Ensure a store root directory exists, creating it owner-only if missing.

    Failure to create the directory is logged and reported through the
    return value rather than raised, so stores can still be constructed.

    Args:
        path: Directory to create.
        label: Human-readable store name for log messages.

    Returns:
        True if the directory exists afterwards.
    """
    if path.is_dir():
        return True
    logger.warning("%s path %s doesn't exist, creating.", label, path)
    try:
        path.mkdir(mode=PRIVATE_DIR_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Couldn't create %s path %s: %s", label.lower(), path, exc)
        return False
    return True


def make_staging_dir(root: Path, name: str) -> Path:
    """Create a hidden, uniquely named scratch directory inside root.

    Staging directories start with a dot, so they never collide with valid
    identifiers and are skipped by list_subdirectories.

    Args:
        root: Store root that will later receive the staged content.
        name: Identifier the staging directory is for.

    Returns:
        Path of the new directory (mode 0o700).
    """
    return Path(tempfile.mkdtemp(prefix=f".{name}-", dir=str(root)))


def remove_tree(path: Path) -> None:
    """Remove a directory tree if it exists.

    Args:
        path: Directory to delete.
    """
    if not path.exists():
        return
    shutil.rmtree(str(path), ignore_errors=True)
    if path.exists():
        # Fallback for stubborn directories
        for item in path.rglob("*"):
            if item.is_file() or item.is_symlink():
                item.unlink()
        for item in sorted([p for p in path.rglob("*") if p.is_dir()], reverse=True):
            item.rmdir()
        path.rmdir()


def list_subdirectories(root: Path) -> list[str]:
    """List the visible immediate subdirectories of root.

    Args:
        root: Directory to scan.

    Returns:
        Sorted directory names, excluding hidden ones. Empty if root is unreadable.
    """
    try:
        entries = list(root.iterdir())
    except OSError:
        return []
    return sorted(
        entry.name
        for entry in entries
        if not entry.name.startswith(".") and entry.is_dir()
    )


def write_private_file(path: Path, payload: bytes) -> None:
    """Write payload to path with owner-only permissions.

    Args:
        path: Destination file; an existing file is replaced.
        payload: Bytes to write.
    """
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(payload)
