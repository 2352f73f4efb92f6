"""
L1 Domain — Install specifier parsing (pure).

A specifier is ``name`` or ``name@version``.
"""

from __future__ import annotations

from dataclasses import dataclass

from toolpack.core.models.tool import ToolIdentity, ToolKind


@dataclass(frozen=True)
class ToolSpec:
    name: str
    version: str | None = None

    def __str__(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name


def parse_spec(spec: str) -> ToolSpec:
    """Parse ``name[@version]``.

    Raises:
        ValueError: Empty name, empty version after ``@``, or a name that
            is not a valid tool name.
    """
    text = spec.strip()
    name, sep, version = text.partition("@")
    name = name.strip()
    version = version.strip()

    if not name:
        raise ValueError(f"invalid tool specifier {spec!r}: missing name")
    if sep and not version:
        raise ValueError(f"invalid tool specifier {spec!r}: missing version after '@'")

    # Reuse the identity validator for the name rules
    ToolIdentity(name=name, kind=ToolKind.AGENT)
    return ToolSpec(name=name, version=version or None)
