"""
Catalog models — the remote ``registry.json`` document.

Pure Pydantic models with no I/O.  The catalog client in
``services.catalog`` fetches and validates them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from toolpack.core.models.tool import ToolKind


class VersionInfo(BaseModel):
    """One published version of a tool."""

    version: str
    archive_path: str = Field(alias="file")   # path of the zip inside the catalog repo
    size: int = 0
    sha256: str | None = None
    created_at: str | None = None

    model_config = {"populate_by_name": True}


class CatalogTool(BaseModel):
    """A tool entry in the catalog."""

    name: str
    kind: ToolKind = Field(alias="type")
    latest_version: str = Field(alias="version")
    description: str = ""
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    downloads: int = 0
    versions: list[VersionInfo] = Field(default_factory=list)

    # Single-version catalogs only carry ``file``/``size`` at the top level
    file: str | None = None
    size: int = 0

    model_config = {"populate_by_name": True}

    def all_versions(self) -> list[VersionInfo]:
        """Known versions; the top-level file counts as the latest."""
        out = list(self.versions)
        if self.file and not any(v.version == self.latest_version for v in out):
            out.append(VersionInfo(version=self.latest_version, file=self.file, size=self.size))
        return out

    def get_version(self, version: str) -> VersionInfo | None:
        wanted = version.removeprefix("v")
        for info in self.all_versions():
            if info.version.removeprefix("v") == wanted:
                return info
        return None

    def version_names(self) -> list[str]:
        return [v.version for v in self.all_versions()]

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, description, author and tags."""
        needle = query.lower()
        haystack = [self.name, self.description, self.author, *self.tags]
        return any(needle in field.lower() for field in haystack)


class Catalog(BaseModel):
    """Root catalog document."""

    version: str = "1.0"
    updated_at: str | None = None
    tools: dict[ToolKind, list[CatalogTool]] = Field(default_factory=dict)

    def get_tool(self, name: str, kind: ToolKind) -> CatalogTool | None:
        for tool in self.tools.get(kind, []):
            if tool.name == name:
                return tool
        return None

    def find(self, name: str) -> CatalogTool | None:
        """First tool with this name, searching agent → command → skill."""
        for kind in ToolKind:
            tool = self.get_tool(name, kind)
            if tool is not None:
                return tool
        return None

    def search(
        self,
        query: str = "",
        *,
        kind: ToolKind | None = None,
        tags: tuple[str, ...] = (),
        author: str | None = None,
    ) -> list[CatalogTool]:
        """Tools matching every given filter, sorted by name then kind.

        An empty query matches everything; ``tags`` must all be present.
        """
        wanted_tags = {t.lower() for t in tags}
        found = []
        for tool_kind, tools in self.tools.items():
            if kind is not None and tool_kind != kind:
                continue
            for tool in tools:
                if query and not tool.matches(query):
                    continue
                if author and tool.author.lower() != author.lower():
                    continue
                if not wanted_tags <= {t.lower() for t in tool.tags}:
                    continue
                found.append(tool)
        order = list(ToolKind)
        return sorted(found, key=lambda t: (t.name, order.index(t.kind)))


class ResolvedVersion(BaseModel):
    """Answer of ``CatalogClient.get_tool_version``."""

    tool: CatalogTool
    version_info: VersionInfo
    latest_version: str
