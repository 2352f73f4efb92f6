"""
Tool state ledger — durable record of installed tools.

The ledger is stored as JSON in ``<workspace>/.toolpack-lock.json``.
Writes are atomic (temp file in the same directory, fsync, then
rename) so a crash mid-write leaves either the old or the new
document on disk, never a partial one.

Every mutation is a read-modify-write transaction: reload from disk
under the write lock, apply the change, save the whole document.  No
operation mutates a cached copy, so sequential writers (threads or
separate processes) never lose each other's updates.

This component owns the ledger file.  Nothing else reads or writes it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from toolpack.core.errors import (
    LedgerValidationError,
    NotInstalledError,
    PermissionDeniedError,
    StateCorruptionError,
)
from toolpack.core.models.tool import InstalledRecord, Ledger, ToolIdentity
from toolpack.core.persistence.locking import FileLock, ReadWriteLock

logger = logging.getLogger(__name__)

LEDGER_FILE = ".toolpack-lock.json"
TEMP_PREFIX = ".toolpack-lock-"
TEMP_SUFFIX = ".tmp"


def default_ledger_path(workspace: Path) -> Path:
    """Get the default ledger path for a workspace."""
    return workspace / LEDGER_FILE


def validate_ledger(ledger: Ledger) -> None:
    """Check a ledger before it is written.

    Raises:
        LedgerValidationError: On the first problem found.
    """
    if not ledger.schema_version:
        raise LedgerValidationError("ledger schema_version cannot be empty")
    if ledger.tools is None:
        raise LedgerValidationError("ledger tools cannot be null")

    for key, record in ledger.tools.items():
        try:
            identity = ToolIdentity.parse_key(key)
        except ValueError as e:
            raise LedgerValidationError(f"invalid ledger key {key!r}: {e}") from e
        if record.kind != identity.kind:
            raise LedgerValidationError(
                f"record {key!r} has kind {record.kind.value!r}",
                tool=identity.name,
            )
        try:
            InstalledRecord.model_validate(record.model_dump())
        except ValidationError as e:
            raise LedgerValidationError(f"invalid record {key!r}: {e}", tool=identity.name) from e


class ToolStateLedger:
    """Concurrency-safe handle on one ledger file.

    Pass one instance to every component that needs the ledger; the
    reader/writer lock is scoped to the instance, the file lock to the
    path.
    """

    def __init__(self, path: Path) -> None:
        if not str(path):
            raise ValueError("ledger path cannot be empty")
        self._path = Path(path)
        self._rw = ReadWriteLock()
        self._flock = FileLock(self._path.with_name(self._path.name + ".lock"))

    @property
    def path(self) -> Path:
        return self._path

    # ── Whole-document access ───────────────────────────────────

    def load(self) -> Ledger:
        """Read the ledger; a missing file yields a fresh, empty ledger.

        Raises:
            StateCorruptionError: The file exists but cannot be parsed.
        """
        with self._rw.read(), self._flock.shared():
            return self._load_unlocked()

    def save(self, ledger: Ledger) -> None:
        """Validate and atomically persist ``ledger``."""
        with self._rw.write(), self._flock.exclusive():
            self._save_unlocked(ledger)

    # ── Record operations ──────────────────────────────────────

    def add_or_update(
        self,
        identity: ToolIdentity,
        record: InstalledRecord,
        *,
        origin: str | None = None,
    ) -> None:
        """Record ``identity``; ``origin`` fills an unset registry origin in the same write."""

        def _apply(ledger: Ledger) -> None:
            try:
                ledger.put(identity, record)
            except ValueError as e:
                raise LedgerValidationError(str(e), tool=identity.name) from e
            if origin and ledger.registry_origin is None:
                ledger.registry_origin = origin

        self._transact(_apply)
        logger.debug("Ledger: recorded %s@%s", identity.key, record.version)

    def remove(self, identity: ToolIdentity) -> InstalledRecord:
        removed: list[InstalledRecord] = []

        def _apply(ledger: Ledger) -> None:
            record = ledger.drop(identity)
            if record is None:
                raise NotInstalledError(
                    f"{identity.key} is not in the ledger", tool=identity.name,
                )
            removed.append(record)

        self._transact(_apply)
        logger.debug("Ledger: removed %s", identity.key)
        return removed[0]

    def get(self, identity: ToolIdentity) -> InstalledRecord:
        """Return the record for ``identity``.

        Raises:
            NotInstalledError: No record for this identity.
        """
        record = self.load().get(identity)
        if record is None:
            raise NotInstalledError(f"{identity.key} is not in the ledger", tool=identity.name)
        return record

    def list(self) -> dict[ToolIdentity, InstalledRecord]:
        ledger = self.load()
        return {ToolIdentity.parse_key(k): v for k, v in sorted(ledger.tools.items())}

    def is_installed(self, identity: ToolIdentity) -> bool:
        return self.load().get(identity) is not None

    def find_by_name(self, name: str) -> list[ToolIdentity]:
        return self.load().find_by_name(name)

    def set_origin(self, url: str) -> None:
        if not url:
            raise LedgerValidationError("registry origin cannot be empty")

        def _apply(ledger: Ledger) -> None:
            ledger.registry_origin = url
            ledger.touch()

        self._transact(_apply)

    def get_origin(self) -> str | None:
        return self.load().registry_origin

    # ── Internals ──────────────────────────────────────────────

    def _transact(self, mutate: Callable[[Ledger], None]) -> None:
        """Reload, mutate, save — all under the write lock."""
        with self._rw.write(), self._flock.exclusive():
            ledger = self._load_unlocked()
            mutate(ledger)
            self._save_unlocked(ledger)

    def _load_unlocked(self) -> Ledger:
        if not self._path.is_file():
            logger.debug("No ledger at %s — starting fresh", self._path)
            return Ledger()

        try:
            raw = self._path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise PermissionDeniedError(f"cannot read ledger: {e}", path=str(self._path)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateCorruptionError(
                f"ledger is not valid JSON: {e}", path=str(self._path),
            ) from e

        try:
            ledger = Ledger.model_validate(data)
        except ValidationError as e:
            raise StateCorruptionError(
                f"ledger does not match the schema: {e}", path=str(self._path),
            ) from e

        try:
            validate_ledger(ledger)
        except LedgerValidationError as e:
            raise StateCorruptionError(
                f"ledger is inconsistent: {e.message}", tool=e.tool, path=str(self._path),
            ) from e
        return ledger

    def _save_unlocked(self, ledger: Ledger) -> None:
        validate_ledger(ledger)

        content = json.dumps(ledger.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
        parent = self._path.parent

        try:
            parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX)
        except PermissionError as e:
            raise PermissionDeniedError(f"cannot write ledger: {e}", path=str(parent)) from e

        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except PermissionError as e:
            tmp.unlink(missing_ok=True)
            raise PermissionDeniedError(f"cannot write ledger: {e}", path=str(self._path)) from e
        except BaseException:
            tmp.unlink(missing_ok=True)
            logger.error("Failed to save ledger to %s", self._path)
            raise

        logger.debug("Ledger saved to %s (%d tools)", self._path, len(ledger.tools))
