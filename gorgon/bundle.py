"""Deterministic archives of published sites.

The same directory tree always produces byte-identical output: entries are
written in sorted order with a fixed timestamp and fixed permissions, so
bundles can be compared or cached by checksum.
"""

from __future__ import annotations

import io
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from .errors import BundleError

# Earliest timestamp the ZIP format can represent.
FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644


def bundle_directory(source_dir: Path, prefix: str = "") -> bytes:
    """Zip every file under source_dir into an in-memory archive.

    Args:
        source_dir: Directory to archive.
        prefix: Optional directory name to nest entries under.

    Returns:
        The ZIP archive as bytes.

    Raises:
        BundleError: If source_dir is missing or not a directory.
    """
    if not source_dir.is_dir():
        raise BundleError(source_dir, "publish directory doesn't exist; build the site first")

    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED, compresslevel=9) as archive:
        for candidate in sorted(source_dir.rglob("*")):
            if candidate.is_dir():
                continue
            relative = candidate.relative_to(source_dir).as_posix()
            arcname = f"{prefix}/{relative}" if prefix else relative
            info = ZipInfo(arcname, date_time=FIXED_TIMESTAMP)
            info.compress_type = ZIP_DEFLATED
            info.external_attr = (0o100000 | FILE_MODE) << 16
            archive.writestr(info, candidate.read_bytes())
    return buffer.getvalue()
