"""
L5 Orchestration — Install, uninstall and verify tools.

``Installer.install`` is a small state machine::

    resolving → downloading → verifying → backing_up → extracting
              → committing → done

    extracting / committing ──failure──▶ rolling_back ──▶ failed
    any other stage         ──failure──▶ failed

Guarantees:
    - A tool directory is never left on disk without a matching ledger
      record, and a record never points at a missing directory.
    - A failed update leaves the previous version in place, both on
      disk and in the ledger.
    - Temp downloads are always removed.
    - Rollback never replaces the original error; a rolled-back install
      is still reported as a failure.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Callable

from toolpack.core.errors import (
    NotInstalledError,
    OperationCancelled,
    StateCorruptionError,
    ToolpackError,
)
from toolpack.core.models.catalog import ResolvedVersion
from toolpack.core.models.tool import InstalledRecord, ToolIdentity, ToolKind
from toolpack.core.models.transaction import (
    BatchResult,
    InstallationTransaction,
    InstallResult,
    InstallStage,
    TransactionOutcome,
)
from toolpack.core.persistence.journal import JournalEntry, JournalWriter
from toolpack.core.services.tool_install.domain.paths import backup_path, install_path
from toolpack.core.services.tool_install.domain.specifiers import parse_spec
from toolpack.core.services.tool_install.domain.versioning import same_version
from toolpack.core.services.tool_install.execution.backup import (
    backup_destination,
    discard_backup,
    restore_backup,
)
from toolpack.core.services.tool_install.execution.download import cleanup_staging, stage_archive
from toolpack.core.services.tool_install.orchestration.protocols import (
    CatalogClient,
    Downloader,
    Extractor,
    LedgerStore,
)

logger = logging.getLogger(__name__)

# Failures in these stages (or after a backup was taken) must be undone
_ROLLBACK_STAGES = (InstallStage.EXTRACTING, InstallStage.COMMITTING)


def _new_tx_id() -> str:
    return uuid.uuid4().hex[:12]


class Installer:
    """Drives install/uninstall/verify against one workspace.

    Args:
        catalog: Resolves names and versions.
        downloader: Fetches archive bytes.
        extractor: Extracts, hashes and removes directories under ``base_dir``.
        ledger: The workspace's ledger handle.
        base_dir: Workspace root (``.claude`` by default).
        download_url: Maps a resolved version to its archive URL.
            Defaults to ``catalog.archive_url``.
        journal: Optional operation journal.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        downloader: Downloader,
        extractor: Extractor,
        ledger: LedgerStore,
        base_dir: Path,
        *,
        download_url: Callable[[ResolvedVersion], str] | None = None,
        journal: JournalWriter | None = None,
        tx_id_factory: Callable[[], str] = _new_tx_id,
    ) -> None:
        self.catalog = catalog
        self.downloader = downloader
        self.extractor = extractor
        self.ledger = ledger
        self.base_dir = Path(base_dir)
        self._download_url = download_url or catalog.archive_url
        self.journal = journal
        self._tx_id_factory = tx_id_factory

    # ── Paths ───────────────────────────────────────────────────

    def install_path(self, identity: ToolIdentity) -> Path:
        return install_path(self.base_dir, identity)

    # ── Install ─────────────────────────────────────────────────

    def install(
        self,
        name: str,
        requested_version: str | None = None,
        *,
        kind: ToolKind | None = None,
        force: bool = False,
        cancel: threading.Event | None = None,
    ) -> InstallResult:
        """Install ``name`` (latest version unless one is requested).

        Returns:
            ``InstallResult``; ``skipped=True`` when the same version is
            already recorded and ``force`` is not set.

        Raises:
            ToolpackError: Typed failure carrying the tool and stage.
        """
        started = time.monotonic()
        tx: InstallationTransaction | None = None
        stage = InstallStage.RESOLVING

        try:
            self._check_cancel(cancel, name)
            resolved = self.catalog.get_tool_version(name, kind, requested_version)
            identity = ToolIdentity(name=resolved.tool.name, kind=resolved.tool.kind)
            version = resolved.version_info.version
            previous = self._current_record(identity)

            if previous is not None and same_version(previous.version, version) and not force:
                logger.info("%s@%s is already installed", identity, version)
                result = InstallResult(
                    name=identity.name,
                    kind=identity.kind.value,
                    ok=True,
                    skipped=True,
                    old_version=previous.version,
                    new_version=version,
                    message=f"{identity.name}@{version} is already installed",
                )
                self._journal("install", result, started)
                return result

            tx = InstallationTransaction(
                identity=identity,
                requested_version=version,
                destination_path=self.install_path(identity),
                tx_id=self._tx_id_factory(),
                previous_version=previous.version if previous else None,
            )
            tx.history.append(InstallStage.RESOLVING)
            self._run(tx, resolved, cancel)

        except BaseException as e:
            if tx is not None:
                stage = tx.stage
                touched = stage in _ROLLBACK_STAGES or tx.backup_path is not None
                if touched:
                    self._rollback(tx)
                tx.outcome = TransactionOutcome.ROLLED_BACK if touched else TransactionOutcome.FAILED
                tx.stage = InstallStage.FAILED
                tx.history.append(InstallStage.FAILED)
                cleanup_staging(tx.temp_dir)

            if not isinstance(e, Exception):
                raise

            err = self._as_tool_error(e, name, stage)
            logger.error("Install of %s failed at %s: %s", name, stage.value, err.message)
            self._journal(
                "install",
                InstallResult(
                    name=name,
                    kind=tx.identity.kind.value if tx else (kind.value if kind else ""),
                    old_version=tx.previous_version if tx else None,
                    new_version=tx.requested_version if tx else requested_version,
                    error=err.message,
                    stage=stage.value,
                ),
                started,
                status="rolled_back" if tx and tx.outcome is TransactionOutcome.ROLLED_BACK else "failed",
            )
            if err is e:
                raise
            raise err from e

        result = InstallResult(
            name=tx.identity.name,
            kind=tx.identity.kind.value,
            ok=True,
            old_version=tx.previous_version,
            new_version=tx.requested_version,
            message=self._success_message(tx),
        )
        logger.info(result.message)
        self._journal("install", result, started)
        return result

    def _run(
        self,
        tx: InstallationTransaction,
        resolved: ResolvedVersion,
        cancel: threading.Event | None,
    ) -> None:
        identity = tx.identity
        info = resolved.version_info
        dest = tx.destination_path

        # Downloading
        self._advance(tx, InstallStage.DOWNLOADING, cancel)
        url = self._download_url(resolved)
        logger.info("Downloading %s@%s", identity, tx.requested_version)
        tx.temp_dir, tx.temp_archive_path = stage_archive(
            self.downloader, url, expected_size=info.size, cancel=cancel,
        )

        # Verifying
        self._advance(tx, InstallStage.VERIFYING, cancel)
        if info.sha256:
            tx.computed_integrity = self.extractor.verify_file(tx.temp_archive_path, info.sha256)
        else:
            tx.computed_integrity = self.extractor.hash_file(tx.temp_archive_path)

        # Backing up
        self._advance(tx, InstallStage.BACKING_UP, cancel)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tx.backup_path = backup_destination(
            dest, backup_path(self.base_dir, identity, tx.tx_id),
        )

        # Extracting
        self._advance(tx, InstallStage.EXTRACTING, cancel)
        self.extractor.extract(tx.temp_archive_path, dest, cancel)

        # Committing
        self._advance(tx, InstallStage.COMMITTING, cancel)
        # Record and first-install origin go in one ledger write
        self.ledger.add_or_update(
            identity,
            InstalledRecord(
                version=tx.requested_version,
                kind=identity.kind,
                integrity=tx.computed_integrity,
            ),
            origin=self.catalog.get_registry_origin(),
        )

        # Done
        tx.stage = InstallStage.DONE
        tx.history.append(InstallStage.DONE)
        tx.outcome = TransactionOutcome.COMMITTED
        if tx.backup_path is not None:
            discard_backup(tx.backup_path)
        cleanup_staging(tx.temp_dir)

    def _rollback(self, tx: InstallationTransaction) -> None:
        """Put the destination back the way it was before ``tx`` started.

        Never raises: a rollback failure is logged with the backup
        location so the user can recover by hand.
        """
        tx.stage = InstallStage.ROLLING_BACK
        tx.history.append(InstallStage.ROLLING_BACK)
        dest = tx.destination_path
        logger.warning("Rolling back %s", tx.identity)

        try:
            self.extractor.remove_dir(dest)
        except Exception as e:
            logger.error("Rollback: could not remove %s: %s", dest, e)

        if tx.backup_path is None:
            return
        try:
            restore_backup(tx.backup_path, dest)
        except Exception as e:
            logger.error(
                "Rollback: could not restore %s; previous version left at %s: %s",
                dest, tx.backup_path, e,
            )

    def install_multiple(
        self,
        specs: list[str],
        *,
        force: bool = False,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Install each ``name[@version]`` in turn; one failure never stops the rest."""
        batch = BatchResult()
        if not specs:
            batch.errors.append(ToolpackError("no tools specified"))
            return batch

        for raw in specs:
            try:
                spec = parse_spec(raw)
                batch.results.append(
                    self.install(spec.name, spec.version, force=force, cancel=cancel),
                )
            except (ToolpackError, ValueError) as e:
                err = e if isinstance(e, ToolpackError) else ToolpackError(str(e), tool=raw)
                batch.errors.append(err)
                batch.results.append(
                    InstallResult(
                        name=raw,
                        error=err.message,
                        stage=err.stage,
                        message=f"failed to install {raw}",
                    ),
                )
                if isinstance(e, OperationCancelled):
                    break
        return batch

    # ── Uninstall / verify ──────────────────────────────────────

    def uninstall(self, name: str, *, kind: ToolKind | None = None) -> InstallResult:
        """Remove the directory, then the ledger record.

        The record stays if the directory cannot be removed.

        Raises:
            NotInstalledError: No ledger record for ``name``.
        """
        started = time.monotonic()
        identity = self.resolve_installed(name, kind)
        record = self.ledger.get(identity)
        dest = self.install_path(identity)

        try:
            self.extractor.remove_dir(dest)
            self.ledger.remove(identity)
        except ToolpackError as e:
            logger.error("Uninstall of %s failed: %s", identity, e)
            self._journal(
                "uninstall",
                InstallResult(name=name, kind=identity.kind.value, old_version=record.version, error=e.message),
                started,
                status="failed",
            )
            raise

        result = InstallResult(
            name=identity.name,
            kind=identity.kind.value,
            ok=True,
            old_version=record.version,
            message=f"Removed {identity.name} ({record.version})",
        )
        logger.info(result.message)
        self._journal("uninstall", result, started)
        return result

    def verify(self, name: str, *, kind: ToolKind | None = None) -> InstalledRecord:
        """Check that the ledger and the disk agree about ``name``.

        Raises:
            NotInstalledError: No ledger record.
            StateCorruptionError: Directory missing or empty.
        """
        identity = self.resolve_installed(name, kind)
        record = self.ledger.get(identity)
        dest = self.install_path(identity)

        if not dest.is_dir():
            raise StateCorruptionError(
                f"installed directory is missing: {dest}", tool=identity.name, path=str(dest),
            )
        if not any(dest.iterdir()):
            raise StateCorruptionError(
                f"installed directory is empty: {dest}", tool=identity.name, path=str(dest),
            )
        logger.debug("Verified %s@%s at %s", identity, record.version, dest)
        return record

    # ── Queries ─────────────────────────────────────────────────

    def installed(self) -> dict[ToolIdentity, InstalledRecord]:
        return self.ledger.list()

    def is_installed(self, name: str, *, kind: ToolKind | None = None) -> bool:
        try:
            self.resolve_installed(name, kind)
        except NotInstalledError:
            return False
        return True

    def installed_version(self, name: str, *, kind: ToolKind | None = None) -> str:
        return self.ledger.get(self.resolve_installed(name, kind)).version

    def resolve_installed(self, name: str, kind: ToolKind | None = None) -> ToolIdentity:
        """Map a bare name to the installed identity (agent, command, skill order).

        Raises:
            NotInstalledError: Nothing by that name is installed.
        """
        if kind is not None:
            identity = ToolIdentity(name=name, kind=kind)
            if not self.ledger.is_installed(identity):
                raise NotInstalledError(f"{identity} is not installed", tool=name)
            return identity

        matches = self.ledger.find_by_name(name)
        if not matches:
            raise NotInstalledError(f"{name} is not installed", tool=name)
        order = list(ToolKind)
        return min(matches, key=lambda ident: order.index(ident.kind))

    # ── Internals ───────────────────────────────────────────────

    def _current_record(self, identity: ToolIdentity) -> InstalledRecord | None:
        try:
            return self.ledger.get(identity)
        except NotInstalledError:
            return None

    def _advance(
        self,
        tx: InstallationTransaction,
        stage: InstallStage,
        cancel: threading.Event | None,
    ) -> None:
        self._check_cancel(cancel, tx.identity.name)
        tx.stage = stage
        tx.history.append(stage)
        logger.debug("%s [%s] → %s", tx.identity, tx.tx_id, stage.value)

    @staticmethod
    def _check_cancel(cancel: threading.Event | None, name: str) -> None:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled("operation cancelled", tool=name)

    @staticmethod
    def _as_tool_error(e: Exception, name: str, stage: InstallStage) -> ToolpackError:
        if isinstance(e, ToolpackError):
            if e.tool is None:
                e.tool = name
            if e.stage is None:
                e.stage = stage.value
            return e
        return ToolpackError(str(e), tool=name, stage=stage.value)

    @staticmethod
    def _success_message(tx: InstallationTransaction) -> str:
        name = tx.identity.name
        if tx.previous_version is None:
            return f"Installed {name} {tx.requested_version}"
        if tx.previous_version == tx.requested_version:
            return f"Reinstalled {name} {tx.requested_version}"
        return f"Updated {name} {tx.previous_version} → {tx.requested_version}"

    def _journal(
        self,
        operation: str,
        result: InstallResult,
        started: float,
        *,
        status: str | None = None,
    ) -> None:
        if self.journal is None:
            return
        if status is None:
            status = "skipped" if result.skipped else ("ok" if result.ok else "failed")
        self.journal.write(JournalEntry(
            operation=operation,
            tool=result.name,
            kind=result.kind,
            status=status,
            old_version=result.old_version,
            new_version=result.new_version,
            stage=result.stage,
            error=result.error,
            duration_ms=int((time.monotonic() - started) * 1000),
        ))
