"""
L5 Orchestration — Capabilities the orchestrators depend on.

The installer and updater are written against these protocols only,
so tests can hand in in-memory fakes and the CLI hands in the real
catalog, downloader, extractor and ledger.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol

from toolpack.core.models.catalog import CatalogTool, ResolvedVersion
from toolpack.core.models.tool import InstalledRecord, ToolIdentity, ToolKind


class CatalogClient(Protocol):
    def get_tool_version(
        self, name: str, kind: ToolKind | None = None, version: str | None = None,
    ) -> ResolvedVersion: ...

    def find_tool(self, name: str, kind: ToolKind | None = None) -> CatalogTool: ...

    def archive_url(self, resolved: ResolvedVersion) -> str: ...

    def get_registry_origin(self) -> str: ...


class Downloader(Protocol):
    def fetch(
        self,
        url: str,
        expected_size: int = 0,
        show_progress: bool = False,
        cancel: threading.Event | None = None,
    ) -> bytes: ...


class Extractor(Protocol):
    def extract(
        self, archive_path: Path, destination: Path, cancel: threading.Event | None = None,
    ) -> int: ...

    def hash_file(self, path: Path) -> str: ...

    def verify_file(self, path: Path, expected: str) -> str: ...

    def remove_dir(self, path: Path) -> None: ...


class LedgerStore(Protocol):
    def add_or_update(
        self, identity: ToolIdentity, record: InstalledRecord, *, origin: str | None = None,
    ) -> None: ...

    def remove(self, identity: ToolIdentity) -> InstalledRecord: ...

    def get(self, identity: ToolIdentity) -> InstalledRecord: ...

    def list(self) -> dict[ToolIdentity, InstalledRecord]: ...

    def is_installed(self, identity: ToolIdentity) -> bool: ...

    def find_by_name(self, name: str) -> list[ToolIdentity]: ...

    def set_origin(self, url: str) -> None: ...

    def get_origin(self) -> str | None: ...
