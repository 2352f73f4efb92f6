"""
Archive extractor — validated ZIP extraction under a base root.

Every path this component touches is checked against its base root
first.  Extraction is two-phase:

    1. Pre-scan the full entry listing against ``SecurityLimits``.
    2. Only if everything passes, create directories and stream files.

Permissions on disk are fixed (dirs 0o755, files 0o644); whatever the
archive declares is ignored.  The extractor never rolls back on its
own; a half-written destination is the orchestrator's to clean up.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import zipfile
from pathlib import Path

from toolpack.core.errors import (
    OperationCancelled,
    PermissionDeniedError,
    SecurityViolation,
    ToolpackError,
)
from toolpack.core.models.config import SecurityLimits
from toolpack.core.services.archive import hashing
from toolpack.core.services.archive.validation import (
    ArchiveEntry,
    safe_relative_path,
    scan_entries,
    validate_entries,
)

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
FILE_MODE = 0o644
_CHUNK = 64 * 1024


class ArchiveExtractor:
    """Filesystem operations confined to ``base_dir``."""

    def __init__(self, base_dir: Path, limits: SecurityLimits | None = None) -> None:
        base = Path(base_dir).expanduser()
        base.mkdir(parents=True, exist_ok=True)
        self._base = base.resolve()
        self.limits = limits or SecurityLimits()

    @property
    def base_dir(self) -> Path:
        return self._base

    # ── Path safety ─────────────────────────────────────────────

    def validate_path(self, path: Path) -> Path:
        """Return the absolute form of ``path`` if it lies under the base root.

        Raises:
            SecurityViolation: ``limit="destination"`` when it does not.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._base / candidate
        resolved = candidate.resolve()
        if resolved != self._base and not resolved.is_relative_to(self._base):
            raise SecurityViolation(
                f"path {path} is outside the base directory {self._base}",
                limit="destination",
                path=str(path),
            )
        return resolved

    # ── Pre-scan ────────────────────────────────────────────────

    def scan(self, archive_path: Path) -> list[ArchiveEntry]:
        """List the archive's entries without extracting."""
        with self._open(archive_path) as zf:
            return scan_entries(zf)

    def validate(self, entries: list[ArchiveEntry]) -> None:
        validate_entries(entries, self.limits)

    # ── Extraction ──────────────────────────────────────────────

    def extract(
        self,
        archive_path: Path,
        destination: Path,
        cancel: threading.Event | None = None,
    ) -> int:
        """Extract ``archive_path`` into ``destination``.

        Returns:
            Number of regular files written.

        Raises:
            SecurityViolation: Destination outside the root, or the archive
                failed a structural check (nothing is written in that case).
            OperationCancelled: ``cancel`` was set between entries.
            PermissionDeniedError: The OS rejected a write.
        """
        dest = self.validate_path(destination)

        with self._open(archive_path) as zf:
            entries = scan_entries(zf)
            validate_entries(entries, self.limits)

            try:
                dest.mkdir(parents=True, exist_ok=True)
                os.chmod(dest, DIR_MODE)
            except PermissionError as e:
                raise PermissionDeniedError(f"cannot create {dest}: {e}", path=str(dest)) from e

            files = 0
            for info in zf.infolist():
                if cancel is not None and cancel.is_set():
                    raise OperationCancelled(f"extraction of {archive_path} cancelled")

                rel = safe_relative_path(info.filename)
                if rel == ".":
                    continue
                target = dest / rel

                # Second line of defence after the pre-scan
                if not target.resolve().is_relative_to(dest):
                    raise SecurityViolation(
                        f"entry {info.filename} escapes the destination",
                        limit="path_traversal",
                        path=str(target),
                    )

                try:
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        os.chmod(target, DIR_MODE)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    self._write_entry(zf, info, target)
                except PermissionError as e:
                    raise PermissionDeniedError(
                        f"cannot write {target}: {e}", path=str(target),
                    ) from e
                files += 1

        logger.debug("Extracted %d file(s) from %s into %s", files, archive_path, dest)
        return files

    def _write_entry(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path) -> None:
        """Stream one entry to disk, capped at its declared size."""
        cap = min(info.file_size, self.limits.max_single_entry_bytes)
        written = 0
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        try:
            with os.fdopen(fd, "wb") as out, zf.open(info) as src:
                while True:
                    chunk = src.read(_CHUNK)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > cap:
                        raise SecurityViolation(
                            f"entry {info.filename} inflates beyond its declared size "
                            f"({info.file_size} bytes)",
                            limit="entry_size",
                            path=str(target),
                        )
                    out.write(chunk)
        except zipfile.BadZipFile as e:
            raise SecurityViolation(
                f"corrupt archive entry {info.filename}: {e}", limit="corrupt",
            ) from e
        os.chmod(target, FILE_MODE)

    # ── Packaging ───────────────────────────────────────────────

    def create_archive(self, source_dir: Path, archive_path: Path) -> int:
        """Pack ``source_dir`` into a ZIP at ``archive_path``.

        Dotfiles and dot directories are skipped, as are symlinks.

        Returns:
            Number of files added.
        """
        source = Path(source_dir).resolve()
        if not source.is_dir():
            raise ToolpackError(f"source directory not found: {source}", path=str(source))
        archive = Path(archive_path).resolve()
        archive.parent.mkdir(parents=True, exist_ok=True)

        files = 0
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for root, dirnames, filenames in os.walk(source):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                root_path = Path(root)

                rel_root = root_path.relative_to(source).as_posix()
                if rel_root != ".":
                    dir_info = zipfile.ZipInfo(rel_root + "/")
                    dir_info.external_attr = (0o40000 | DIR_MODE) << 16
                    zf.writestr(dir_info, b"")

                for name in sorted(filenames):
                    if name.startswith("."):
                        continue
                    path = root_path / name
                    if path.is_symlink() or path.resolve() == archive:
                        continue
                    zf.write(path, path.relative_to(source).as_posix())
                    files += 1

        logger.debug("Packed %d file(s) from %s into %s", files, source, archive)
        return files

    # ── Hashing ─────────────────────────────────────────────────

    def hash_file(self, path: Path) -> str:
        return hashing.hash_file(path)

    def verify_file(self, path: Path, expected: str) -> str:
        return hashing.verify_file(path, expected)

    # ── Directory helpers ───────────────────────────────────────

    def remove_dir(self, path: Path) -> None:
        """Remove a directory tree under the base root (missing is fine)."""
        target = self.validate_path(path)
        if target == self._base:
            raise SecurityViolation(
                "refusing to remove the base directory", limit="destination", path=str(path),
            )
        if not target.exists():
            return
        try:
            shutil.rmtree(target)
        except PermissionError as e:
            raise PermissionDeniedError(f"cannot remove {target}: {e}", path=str(target)) from e
        except OSError as e:
            raise ToolpackError(f"cannot remove {target}: {e}", path=str(target)) from e

    def dir_size(self, path: Path) -> int:
        """Total size of regular files under ``path``, in bytes."""
        target = self.validate_path(path)
        total = 0
        for p in target.rglob("*"):
            if p.is_file() and not p.is_symlink():
                total += p.stat().st_size
        return total

    # ── Internals ───────────────────────────────────────────────

    @staticmethod
    def _open(archive_path: Path) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(archive_path, "r")
        except FileNotFoundError as e:
            raise ToolpackError(f"archive not found: {archive_path}", path=str(archive_path)) from e
        except zipfile.BadZipFile as e:
            raise SecurityViolation(
                f"not a valid zip archive: {archive_path}: {e}",
                limit="corrupt",
                path=str(archive_path),
            ) from e
