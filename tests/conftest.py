"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import hashlib
import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from toolpack.core.errors import DefinitiveFetchError, ToolNotFoundError, VersionNotFoundError
from toolpack.core.models.catalog import Catalog, CatalogTool, ResolvedVersion, VersionInfo
from toolpack.core.models.config import SecurityLimits
from toolpack.core.models.tool import ToolKind
from toolpack.core.persistence.journal import JournalWriter
from toolpack.core.persistence.ledger_file import ToolStateLedger, default_ledger_path
from toolpack.core.services.archive.extractor import ArchiveExtractor
from toolpack.core.services.tool_install.orchestration.installer import Installer
from toolpack.core.services.tool_install.orchestration.updater import Updater

ORIGIN = "https://github.com/example/tools"


# ── Archive builders ────────────────────────────────────────────


def zip_bytes(files: dict[str, bytes | str], *, dirs: tuple[str, ...] = ()) -> bytes:
    """Build a deflated zip in memory."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for d in dirs:
            zf.writestr(d.rstrip("/") + "/", b"")
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def write_zip(path: Path, files: dict[str, bytes | str], **kwargs) -> Path:
    path.write_bytes(zip_bytes(files, **kwargs))
    return path


# ── In-memory collaborators ─────────────────────────────────────


class FakeDownloader:
    """Serves registered URLs from memory and records every call."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def fetch(self, url, expected_size=0, show_progress=False, cancel=None) -> bytes:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url not in self.blobs:
            raise DefinitiveFetchError(f"not found: {url}", status=404)
        return self.blobs[url]


class FakeCatalog:
    """CatalogClient over a dict of ``CatalogTool`` values."""

    def __init__(self, origin: str = ORIGIN) -> None:
        self.origin = origin
        self.tools: dict[tuple[ToolKind, str], CatalogTool] = {}

    def find_tool(self, name, kind=None) -> CatalogTool:
        kinds = [kind] if kind is not None else list(ToolKind)
        for k in kinds:
            if (k, name) in self.tools:
                return self.tools[(k, name)]
        raise ToolNotFoundError(f"tool {name!r} not found", tool=name)

    def get_tool_version(self, name, kind=None, version=None) -> ResolvedVersion:
        tool = self.find_tool(name, kind)
        info = tool.get_version(version or tool.latest_version)
        if info is None:
            raise VersionNotFoundError(
                f"version {version} not found", available=tool.version_names(), tool=name,
            )
        return ResolvedVersion(tool=tool, version_info=info, latest_version=tool.latest_version)

    def search(self, query="", *, kind=None, tags=(), author=None) -> list[CatalogTool]:
        by_kind: dict[ToolKind, list[CatalogTool]] = {}
        for (k, _), tool in self.tools.items():
            by_kind.setdefault(k, []).append(tool)
        return Catalog(tools=by_kind).search(query, kind=kind, tags=tags, author=author)

    def archive_url(self, resolved: ResolvedVersion) -> str:
        return f"mem://{resolved.version_info.archive_path}"

    def get_registry_origin(self) -> str:
        return self.origin


@dataclass
class InstallEnv:
    """Everything an installer test needs, wired to one workspace."""

    root: Path
    catalog: FakeCatalog
    downloader: FakeDownloader
    extractor: ArchiveExtractor
    ledger: ToolStateLedger
    journal: JournalWriter
    installer: Installer
    updater: Updater
    published: dict[str, bytes] = field(default_factory=dict)

    def publish(
        self,
        name: str,
        version: str,
        files: dict[str, bytes | str] | None = None,
        *,
        kind: ToolKind = ToolKind.AGENT,
        latest: bool = True,
        declare_sha256: bool = False,
        blob: bytes | None = None,
    ) -> bytes:
        """Add ``name@version`` to the catalog and its archive to the downloader."""
        data = blob if blob is not None else zip_bytes(files or {f"{name}.md": f"# {name} {version}\n"})
        archive_path = f"{kind.directory}/{name}/{name}-{version}.zip"
        info = VersionInfo(
            version=version,
            file=archive_path,
            size=len(data),
            sha256=hashlib.sha256(data).hexdigest() if declare_sha256 else None,
        )

        existing = self.catalog.tools.get((kind, name))
        versions = [v for v in (existing.versions if existing else []) if v.version != version]
        versions.append(info)
        latest_version = version if latest or existing is None else existing.latest_version
        self.catalog.tools[(kind, name)] = CatalogTool(
            name=name, type=kind, version=latest_version, versions=versions,
        )
        self.downloader.blobs[f"mem://{archive_path}"] = data
        return data

    def tool_dir(self, name: str, kind: ToolKind = ToolKind.AGENT) -> Path:
        return self.root / kind.directory / name


# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A fresh workspace directory."""
    ws = tmp_path / ".claude"
    ws.mkdir()
    return ws


@pytest.fixture
def extractor(workspace: Path) -> ArchiveExtractor:
    return ArchiveExtractor(workspace, SecurityLimits())


@pytest.fixture
def ledger(workspace: Path) -> ToolStateLedger:
    return ToolStateLedger(default_ledger_path(workspace))


@pytest.fixture
def env(workspace: Path, extractor: ArchiveExtractor, ledger: ToolStateLedger) -> InstallEnv:
    catalog = FakeCatalog()
    downloader = FakeDownloader()
    journal = JournalWriter(workspace=workspace)
    installer = Installer(
        catalog, downloader, extractor, ledger, extractor.base_dir, journal=journal,
    )
    return InstallEnv(
        root=extractor.base_dir,
        catalog=catalog,
        downloader=downloader,
        extractor=extractor,
        ledger=ledger,
        journal=journal,
        installer=installer,
        updater=Updater(installer, catalog, ledger),
    )
