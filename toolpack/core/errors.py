"""
Error taxonomy — every failure the core reports to its callers.

All errors derive from ``ToolpackError`` and carry optional context
(``tool``, ``stage``, ``path``) so that a message is actionable
without a debugger.  The CLI layer decides how to render them; no
core component exits the process.

    ToolpackError
    ├── NotFoundError
    │   ├── ToolNotFoundError
    │   ├── VersionNotFoundError
    │   └── NotInstalledError
    ├── SecurityViolation
    ├── IntegrityError
    ├── TransientIOError
    │   └── RateLimitedError
    ├── DefinitiveFetchError
    ├── StateCorruptionError
    ├── LedgerValidationError
    ├── PermissionDeniedError
    ├── OperationCancelled
    └── ConfigError
"""

from __future__ import annotations


class ToolpackError(Exception):
    """Base class for all toolpack errors."""

    def __init__(
        self,
        message: str,
        *,
        tool: str | None = None,
        stage: str | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tool = tool
        self.stage = stage
        self.path = path

    def __str__(self) -> str:
        parts = []
        if self.tool:
            parts.append(f"[{self.tool}]")
        if self.stage:
            parts.append(f"({self.stage})")
        parts.append(self.message)
        return " ".join(parts)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "tool": self.tool,
            "stage": self.stage,
            "path": self.path,
        }


# ── Lookup misses ───────────────────────────────────────────────


class NotFoundError(ToolpackError):
    """A tool or version is absent from the catalog or the ledger."""


class ToolNotFoundError(NotFoundError):
    """The catalog has no tool by this name."""


class VersionNotFoundError(NotFoundError):
    """The catalog knows the tool but not the requested version."""

    def __init__(self, message: str, *, available: list[str] | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.available = list(available or [])


class NotInstalledError(NotFoundError):
    """The ledger has no record for this tool."""


# ── Archive / integrity ─────────────────────────────────────────


class SecurityViolation(ToolpackError):
    """An archive failed a structural safety check.

    ``limit`` names the check that failed (``entry_count``,
    ``path_traversal``, ``absolute_path``, ``symlink``, ``total_size``,
    ``entry_size``, ``compression_ratio``, ``destination``, ``empty``,
    ``corrupt``).  Never retried.
    """

    def __init__(self, message: str, *, limit: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.limit = limit


class IntegrityError(ToolpackError):
    """Computed digest does not match the expected one."""

    def __init__(self, message: str, *, expected: str = "", actual: str = "", **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


# ── Network ─────────────────────────────────────────────────────


class TransientIOError(ToolpackError):
    """A network step failed after all retries were used up."""

    def __init__(self, message: str, *, attempts: int = 0, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class RateLimitedError(TransientIOError):
    """The remote asked us to wait ``retry_after`` seconds."""

    def __init__(self, message: str, *, retry_after: float = 0.0, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class DefinitiveFetchError(ToolpackError):
    """The remote gave a final answer (not found, unauthorized)."""

    def __init__(self, message: str, *, status: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.status = status


# ── Local state ─────────────────────────────────────────────────


class StateCorruptionError(ToolpackError):
    """The ledger is unreadable, or the ledger and the disk disagree."""


class LedgerValidationError(ToolpackError):
    """A ledger failed validation and was not written."""


class PermissionDeniedError(ToolpackError):
    """The OS rejected a filesystem write."""


class OperationCancelled(ToolpackError):
    """The caller's cancellation signal was set."""


class ConfigError(ToolpackError):
    """Configuration is invalid or missing."""
