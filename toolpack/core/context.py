"""
Workspace context — wires the core components for one workspace.

Built once per CLI invocation by ``open_workspace`` and passed down
explicitly.  There is exactly one ``ToolStateLedger`` per workspace
and every component that needs it receives that same handle.

    workspace/
    ├── .toolpack-lock.json       ledger
    ├── .toolpack/journal.ndjson  operation journal
    ├── agents/<name>/
    ├── commands/<name>/
    └── skills/<name>/
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from toolpack.core.models.config import AppConfig
from toolpack.core.persistence.journal import JournalWriter
from toolpack.core.persistence.ledger_file import ToolStateLedger, default_ledger_path
from toolpack.core.services.archive.extractor import ArchiveExtractor
from toolpack.core.services.catalog.cache import CatalogCache
from toolpack.core.services.catalog.github import HttpDownloader
from toolpack.core.services.catalog.registry import RegistryCatalog
from toolpack.core.services.tool_install.orchestration.installer import Installer
from toolpack.core.services.tool_install.orchestration.updater import Updater


@dataclass
class Workspace:
    root: Path
    config: AppConfig
    ledger: ToolStateLedger
    extractor: ArchiveExtractor
    catalog: RegistryCatalog
    installer: Installer
    updater: Updater
    journal: JournalWriter


def open_workspace(
    config: AppConfig,
    path: Path | None = None,
    *,
    cache_dir: Path | None = None,
) -> Workspace:
    """Build the component graph for the workspace at ``path``.

    ``path`` defaults to ``config.local.default_path`` relative to the
    current directory.
    """
    root = Path(path or config.local.default_path).expanduser()
    extractor = ArchiveExtractor(root, config.limits)
    root = extractor.base_dir

    ledger = ToolStateLedger(default_ledger_path(root))
    journal = JournalWriter(workspace=root)
    downloader = HttpDownloader(
        auth_token=config.registry.auth_token,
        timeout=config.local.download_timeout_seconds,
    )
    catalog = RegistryCatalog(
        downloader,
        registry_url=config.registry.url,
        branch=config.registry.branch,
        cache=CatalogCache(cache_dir, ttl=config.local.cache_ttl_seconds),
    )
    installer = Installer(catalog, downloader, extractor, ledger, root, journal=journal)
    updater = Updater(installer, catalog, ledger)

    return Workspace(
        root=root,
        config=config,
        ledger=ledger,
        extractor=extractor,
        catalog=catalog,
        installer=installer,
        updater=updater,
        journal=journal,
    )
