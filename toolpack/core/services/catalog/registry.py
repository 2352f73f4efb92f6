"""
Registry catalog — the remote ``registry.json`` as a lookup service.

Fetches the catalog document from the registry repository's raw
content URL (through ``CatalogCache`` when one is given), validates it
with pydantic, and answers tool/version lookups for the installer and
updater.
"""

from __future__ import annotations

import json
import logging
import threading

from toolpack.core.errors import DefinitiveFetchError, ToolNotFoundError, VersionNotFoundError
from toolpack.core.models.catalog import Catalog, CatalogTool, ResolvedVersion
from toolpack.core.models.config import DEFAULT_BRANCH, DEFAULT_REGISTRY_URL
from toolpack.core.models.tool import ToolKind
from toolpack.core.services.catalog.cache import CatalogCache
from toolpack.core.services.catalog.github import HttpDownloader, parse_repo_url, raw_content_url

logger = logging.getLogger(__name__)

REGISTRY_FILE = "registry.json"


class RegistryCatalog:
    """Catalog client backed by a GitHub repository."""

    def __init__(
        self,
        downloader: HttpDownloader,
        registry_url: str = DEFAULT_REGISTRY_URL,
        branch: str = DEFAULT_BRANCH,
        cache: CatalogCache | None = None,
    ) -> None:
        self.downloader = downloader
        self.registry_url = registry_url
        self.branch = branch
        self.cache = cache
        self.owner, self.repo = parse_repo_url(registry_url)
        self._catalog: Catalog | None = None
        self._lock = threading.Lock()

    @property
    def source(self) -> str:
        return f"{self.registry_url}@{self.branch}"

    # ── Document ────────────────────────────────────────────────

    def catalog(self) -> Catalog:
        """The catalog document, fetched at most once per instance."""
        with self._lock:
            if self._catalog is None:
                self._catalog = self._load()
            return self._catalog

    def refresh(self) -> Catalog:
        """Drop every cached copy and fetch again."""
        with self._lock:
            if self.cache is not None:
                self.cache.invalidate()
            self._catalog = self._load()
            return self._catalog

    def _load(self) -> Catalog:
        if self.cache is not None:
            cached = self.cache.get(self.source)
            if cached is not None:
                return cached

        url = raw_content_url(self.owner, self.repo, self.branch, REGISTRY_FILE)
        logger.info("Fetching catalog from %s", url)
        body = self.downloader.fetch(url)

        try:
            catalog = Catalog.model_validate(json.loads(body))
        except ValueError as e:
            # ValidationError is a ValueError; both mean the document is unusable
            raise DefinitiveFetchError(f"malformed catalog at {url}: {e}") from e

        if self.cache is not None:
            try:
                self.cache.put(self.source, catalog)
            except OSError as e:
                logger.warning("Could not write catalog cache: %s", e)
        return catalog

    # ── Lookups ─────────────────────────────────────────────────

    def find_tool(self, name: str, kind: ToolKind | None = None) -> CatalogTool:
        """Look a tool up by name (agent, then command, then skill).

        Raises:
            ToolNotFoundError: No such tool.
        """
        catalog = self.catalog()
        tool = catalog.get_tool(name, kind) if kind is not None else catalog.find(name)
        if tool is None:
            where = f" among {kind.directory}" if kind is not None else ""
            raise ToolNotFoundError(f"tool {name!r} not found in the catalog{where}", tool=name)
        return tool

    def get_tool_version(
        self,
        name: str,
        kind: ToolKind | None = None,
        version: str | None = None,
    ) -> ResolvedVersion:
        """Resolve ``name`` to a concrete catalog version (latest by default).

        Raises:
            ToolNotFoundError: No such tool.
            VersionNotFoundError: The tool exists, the version does not.
        """
        tool = self.find_tool(name, kind)
        wanted = version or tool.latest_version
        info = tool.get_version(wanted)
        if info is None:
            available = tool.version_names()
            raise VersionNotFoundError(
                f"version {wanted!r} of {name} not found (available: {', '.join(available) or 'none'})",
                available=available,
                tool=name,
            )
        return ResolvedVersion(tool=tool, version_info=info, latest_version=tool.latest_version)

    def search(
        self,
        query: str = "",
        *,
        kind: ToolKind | None = None,
        tags: tuple[str, ...] = (),
        author: str | None = None,
    ) -> list[CatalogTool]:
        """Catalog entries matching ``query`` and the optional filters."""
        return self.catalog().search(query, kind=kind, tags=tags, author=author)

    def archive_url(self, resolved: ResolvedVersion) -> str:
        return raw_content_url(self.owner, self.repo, self.branch, resolved.version_info.archive_path)

    def get_registry_origin(self) -> str:
        return self.registry_url
