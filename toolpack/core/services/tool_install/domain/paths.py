"""
L1 Domain — Workspace path layout (pure).

    <base>/<kind>s/<name>                     installed tool
    <base>/<kind>s/.<name>.backup-<tx_id>     backup during an update
"""

from __future__ import annotations

from pathlib import Path

from toolpack.core.models.tool import ToolIdentity

BACKUP_MARKER = ".backup-"


def install_path(base_dir: Path, identity: ToolIdentity) -> Path:
    return Path(base_dir) / identity.kind.directory / identity.name


def backup_path(base_dir: Path, identity: ToolIdentity, tx_id: str) -> Path:
    """Sibling of the install path, hidden so listings skip it."""
    return Path(base_dir) / identity.kind.directory / f".{identity.name}{BACKUP_MARKER}{tx_id}"
