"""
L5 Orchestration — Outdated detection and updates.

The updater never touches the workspace itself: an update is an
``Installer.install`` of the catalog's latest version, with the same
backup/rollback guarantees.
"""

from __future__ import annotations

import logging
import threading

from toolpack.core.errors import NotFoundError, OperationCancelled, ToolpackError
from toolpack.core.models.tool import ToolKind
from toolpack.core.models.transaction import BatchResult, OutdatedEntry, UpdateResult
from toolpack.core.services.tool_install.domain.versioning import compare_versions
from toolpack.core.services.tool_install.orchestration.installer import Installer
from toolpack.core.services.tool_install.orchestration.protocols import CatalogClient, LedgerStore

logger = logging.getLogger(__name__)


class Updater:
    """Compares the ledger against the catalog and applies updates."""

    def __init__(self, installer: Installer, catalog: CatalogClient, ledger: LedgerStore) -> None:
        self.installer = installer
        self.catalog = catalog
        self.ledger = ledger

    def check_outdated(self) -> list[OutdatedEntry]:
        """Installed tools whose catalog latest is newer, sorted by name.

        Tools no longer in the catalog are skipped.
        """
        outdated: list[OutdatedEntry] = []
        for identity, record in self.ledger.list().items():
            try:
                tool = self.catalog.find_tool(identity.name, identity.kind)
            except NotFoundError:
                logger.debug("%s is no longer in the catalog, skipping", identity)
                continue
            if compare_versions(record.version, tool.latest_version) < 0:
                outdated.append(OutdatedEntry(
                    name=identity.name,
                    kind=identity.kind.value,
                    current=record.version,
                    latest=tool.latest_version,
                ))
        return sorted(outdated, key=lambda e: (e.name, e.kind))

    def update(
        self,
        name: str,
        *,
        kind: ToolKind | None = None,
        cancel: threading.Event | None = None,
    ) -> UpdateResult:
        """Update one installed tool to the catalog's latest version.

        Raises:
            NotInstalledError: ``name`` is not installed.
            ToolpackError: The underlying install failed (already rolled back).
        """
        identity = self.installer.resolve_installed(name, kind)
        current = self.ledger.get(identity).version
        tool = self.catalog.find_tool(identity.name, identity.kind)
        latest = tool.latest_version

        if compare_versions(current, latest) >= 0:
            logger.info("%s is up to date (%s)", identity, current)
            return UpdateResult(
                name=identity.name,
                kind=identity.kind.value,
                ok=True,
                skipped=True,
                old_version=current,
                new_version=current,
                message=f"{identity.name} is already up to date ({current})",
            )

        return self.installer.install(identity.name, latest, kind=identity.kind, cancel=cancel)

    def update_all(self, *, cancel: threading.Event | None = None) -> BatchResult:
        """Update every outdated tool; one failure never stops the rest."""
        batch = BatchResult()
        for entry in self.check_outdated():
            try:
                batch.results.append(
                    self.update(entry.name, kind=ToolKind(entry.kind), cancel=cancel),
                )
            except ToolpackError as e:
                batch.errors.append(e)
                batch.results.append(UpdateResult(
                    name=entry.name,
                    kind=entry.kind,
                    old_version=entry.current,
                    new_version=entry.latest,
                    error=e.message,
                    stage=e.stage,
                    message=f"failed to update {entry.name}",
                ))
                if isinstance(e, OperationCancelled):
                    break
        return batch

    def is_outdated(self, name: str, *, kind: ToolKind | None = None) -> bool:
        identity = self.installer.resolve_installed(name, kind)
        current = self.ledger.get(identity).version
        try:
            tool = self.catalog.find_tool(identity.name, identity.kind)
        except NotFoundError:
            return False
        return compare_versions(current, tool.latest_version) < 0

    def outdated_count(self) -> int:
        return len(self.check_outdated())
