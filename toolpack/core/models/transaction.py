"""
Installation transaction and operation results.

``InstallationTransaction`` lives only for the duration of one
install/update call.  The result dataclasses are what the
orchestrators hand back to the CLI layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from toolpack.core.models.tool import ToolIdentity


class InstallStage(StrEnum):
    """States of the install state machine."""

    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    BACKING_UP = "backing_up"
    EXTRACTING = "extracting"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    DONE = "done"
    FAILED = "failed"


class TransactionOutcome(StrEnum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass
class InstallationTransaction:
    """Working state of one install or update."""

    identity: ToolIdentity
    requested_version: str
    destination_path: Path
    tx_id: str
    previous_version: str | None = None
    temp_dir: Path | None = None
    temp_archive_path: Path | None = None
    backup_path: Path | None = None
    computed_integrity: str = ""
    stage: InstallStage = InstallStage.RESOLVING
    outcome: TransactionOutcome = TransactionOutcome.PENDING
    history: list[InstallStage] = field(default_factory=list)

    @property
    def is_update(self) -> bool:
        return self.backup_path is not None


@dataclass
class InstallResult:
    """Result of installing (or updating) a single tool."""

    name: str
    kind: str = ""
    ok: bool = False
    skipped: bool = False
    old_version: str | None = None
    new_version: str | None = None
    message: str = ""
    error: str | None = None
    stage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "name": self.name,
            "kind": self.kind,
            "ok": self.ok,
            "skipped": self.skipped,
            "old_version": self.old_version,
            "new_version": self.new_version,
            "message": self.message,
            "error": self.error,
            "stage": self.stage,
        }


# Same shape; kept as a distinct name for readability at call sites.
UpdateResult = InstallResult


@dataclass
class OutdatedEntry:
    """An installed tool with a newer catalog version."""

    name: str
    kind: str
    current: str
    latest: str

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "kind": self.kind,
            "current": self.current,
            "latest": self.latest,
        }


@dataclass
class BatchResult:
    """Per-item results plus the aggregate error list."""

    results: list[InstallResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok and not r.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "errors": [str(e) for e in self.errors],
        }
