"""
Tool models — identity, installed records and the ledger document.

The ledger is the single document that records what is installed in
one workspace.  It is serialized to ``<workspace>/.toolpack-lock.json``
and reloaded before every mutation (see ``persistence.ledger_file``).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SCHEMA_VERSION = "1.0"
DEFAULT_SOURCE = "registry"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ToolKind(StrEnum):
    """Kinds of installable tools."""

    AGENT = "agent"
    COMMAND = "command"
    SKILL = "skill"

    @property
    def directory(self) -> str:
        """Workspace sub-directory for this kind (``agents``, ...)."""
        return f"{self.value}s"


class ToolIdentity(BaseModel):
    """``(kind, name)`` — unique within one workspace."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ToolKind

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tool name cannot be empty")
        if "/" in v or "\\" in v or v in (".", "..") or ".." in v:
            raise ValueError(f"invalid tool name: {v!r}")
        return v

    @property
    def key(self) -> str:
        """Compound ledger key, e.g. ``agent:code-reviewer``."""
        return f"{self.kind.value}:{self.name}"

    @classmethod
    def parse_key(cls, key: str) -> ToolIdentity:
        kind, sep, name = key.partition(":")
        if not sep:
            raise ValueError(f"ledger key must look like 'kind:name', got {key!r}")
        return cls(name=name, kind=ToolKind(kind))

    def __str__(self) -> str:
        return self.key


class InstalledRecord(BaseModel):
    """One installed tool as recorded in the ledger."""

    version: str
    kind: ToolKind
    installed_at: str = Field(default_factory=_now_iso)
    source: str = DEFAULT_SOURCE
    integrity: str = ""  # hex SHA-256 of the archive

    @field_validator("version", "source")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class Ledger(BaseModel):
    """Root ledger document.

    ``tools`` is keyed by ``ToolIdentity.key``.  It is never null: a
    fresh ledger has an empty map and no registry origin.
    """

    schema_version: str = DEFAULT_SCHEMA_VERSION
    updated_at: str = Field(default_factory=_now_iso)
    registry_origin: str | None = None
    tools: dict[str, InstalledRecord] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def get(self, identity: ToolIdentity) -> InstalledRecord | None:
        return self.tools.get(identity.key)

    def put(self, identity: ToolIdentity, record: InstalledRecord) -> None:
        if record.kind != identity.kind:
            raise ValueError(
                f"record kind {record.kind.value!r} does not match identity {identity.key!r}"
            )
        self.tools[identity.key] = record
        self.touch()

    def drop(self, identity: ToolIdentity) -> InstalledRecord | None:
        record = self.tools.pop(identity.key, None)
        if record is not None:
            self.touch()
        return record

    def identities(self) -> list[ToolIdentity]:
        return [ToolIdentity.parse_key(k) for k in sorted(self.tools)]

    def find_by_name(self, name: str) -> list[ToolIdentity]:
        """All identities with this name (one per kind at most)."""
        return [ident for ident in self.identities() if ident.name == name]
