"""
Archive pre-scan — pure structural checks (no filesystem writes).

``scan_entries`` turns a ``zipfile.ZipFile`` listing into
``ArchiveEntry`` values; ``validate_entries`` applies every
``SecurityLimits`` check to the full listing.  Extraction only starts
after the whole listing passes, so a rejected archive never leaves a
partial tree behind.
"""

from __future__ import annotations

import posixpath
import re
import stat
import zipfile
from dataclasses import dataclass

from toolpack.core.errors import SecurityViolation
from toolpack.core.models.config import SecurityLimits

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


@dataclass(frozen=True)
class ArchiveEntry:
    """One entry as declared by the archive (transient)."""

    path: str
    uncompressed_size: int
    compressed_size: int
    is_dir: bool
    is_symlink: bool


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    mode = info.external_attr >> 16
    return mode != 0 and stat.S_ISLNK(mode)


def scan_entries(zf: zipfile.ZipFile) -> list[ArchiveEntry]:
    """List the archive without extracting anything."""
    return [
        ArchiveEntry(
            path=info.filename,
            uncompressed_size=info.file_size,
            compressed_size=info.compress_size,
            is_dir=info.is_dir(),
            is_symlink=_is_symlink(info),
        )
        for info in zf.infolist()
    ]


def safe_relative_path(name: str) -> str:
    """Normalize an entry name to a relative POSIX path inside the root.

    Raises:
        SecurityViolation: Absolute path or an escape via ``..``.
    """
    if name.startswith(("/", "\\")) or _DRIVE_RE.match(name):
        raise SecurityViolation(
            f"absolute paths are not allowed in archives: {name}", limit="absolute_path",
        )

    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized == ".." or normalized.startswith("../"):
        raise SecurityViolation(
            f"path traversal detected in archive entry: {name}", limit="path_traversal",
        )
    if "\x00" in normalized:
        raise SecurityViolation(f"NUL byte in archive entry: {name!r}", limit="path_traversal")
    return normalized


def validate_entries(entries: list[ArchiveEntry], limits: SecurityLimits) -> None:
    """Run every structural check against the full listing.

    Raises:
        SecurityViolation: Naming the first limit that failed.
    """
    if not entries:
        raise SecurityViolation("archive is empty", limit="empty")

    if len(entries) > limits.max_entry_count:
        raise SecurityViolation(
            f"archive contains too many entries ({len(entries)}), "
            f"maximum allowed: {limits.max_entry_count}",
            limit="entry_count",
        )

    total_uncompressed = 0
    total_compressed = 0

    for entry in entries:
        safe_relative_path(entry.path)

        if entry.is_symlink:
            raise SecurityViolation(
                f"symlinks are not allowed in archives: {entry.path}", limit="symlink",
            )

        if entry.uncompressed_size > limits.max_single_entry_bytes:
            raise SecurityViolation(
                f"entry {entry.path} is too large ({entry.uncompressed_size} bytes), "
                f"maximum allowed: {limits.max_single_entry_bytes} bytes",
                limit="entry_size",
            )

        total_uncompressed += entry.uncompressed_size
        total_compressed += entry.compressed_size

    if total_uncompressed > limits.max_total_uncompressed_bytes:
        raise SecurityViolation(
            f"total uncompressed size ({total_uncompressed} bytes) exceeds maximum "
            f"({limits.max_total_uncompressed_bytes} bytes)",
            limit="total_size",
        )

    if total_compressed > 0:
        ratio = total_uncompressed / total_compressed
        if ratio > limits.max_compression_ratio:
            raise SecurityViolation(
                f"compression ratio ({ratio:.2f}:1) exceeds maximum "
                f"({limits.max_compression_ratio:.2f}:1), possible zip bomb",
                limit="compression_ratio",
            )
