"""Deterministic zip packaging of build output.

Identical build output (same relative paths, same bytes, same executable
bits) always yields byte-identical archives, so the archive fingerprint is
a meaningful change indicator:

- entries sorted by POSIX relative path
- fixed 1980-01-01 00:00:00 timestamp on every entry
- permissions normalised to 0644 (0755 when owner-executable)
- fixed compression method and level, no directory entries
"""

from __future__ import annotations

import io
import stat
import zipfile
from pathlib import Path

from lambdapromote.core.errors import BuildFailed

FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
COMPRESSION = zipfile.ZIP_DEFLATED
COMPRESS_LEVEL = 9


def collect_files(directory: Path) -> list[tuple[str, Path]]:
    """Return ``(archive_name, path)`` for every regular file, sorted."""
    entries: list[tuple[str, Path]] = []
    for path in directory.rglob("*"):
        if path.is_file():
            entries.append((path.relative_to(directory).as_posix(), path))
    entries.sort(key=lambda item: item[0])
    return entries


def _zip_info(name: str, path: Path) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
    executable = bool(path.stat().st_mode & stat.S_IXUSR)
    mode = 0o755 if executable else 0o644
    info.external_attr = (stat.S_IFREG | mode) << 16
    info.create_system = 3  # unix, so external_attr is honoured everywhere
    info.compress_type = COMPRESSION
    return info


def build_deterministic_zip(directory: Path) -> bytes:
    """Package *directory* into a reproducible zip archive.

    Raises BuildFailed when the directory is missing or holds no files;
    an empty archive is never a valid deployment package.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise BuildFailed(f"Build output {directory} is not a directory", step="package")

    entries = collect_files(directory)
    if not entries:
        raise BuildFailed(f"Build output {directory} is empty", step="package")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=COMPRESSION, compresslevel=COMPRESS_LEVEL) as zf:
        for name, path in entries:
            zf.writestr(_zip_info(name, path), path.read_bytes(), compresslevel=COMPRESS_LEVEL)
    return buffer.getvalue()
