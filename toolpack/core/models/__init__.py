"""
Domain models — Pydantic types and result dataclasses.

All models are re-exported here for convenient access:

    from toolpack.core.models import Ledger, InstalledRecord, ToolIdentity, ToolKind
"""

from toolpack.core.models.catalog import Catalog, CatalogTool, ResolvedVersion, VersionInfo
from toolpack.core.models.config import (
    AppConfig,
    LocalConfig,
    RegistryConfig,
    SecurityLimits,
)
from toolpack.core.models.tool import InstalledRecord, Ledger, ToolIdentity, ToolKind
from toolpack.core.models.transaction import (
    BatchResult,
    InstallationTransaction,
    InstallResult,
    InstallStage,
    OutdatedEntry,
    TransactionOutcome,
    UpdateResult,
)

__all__ = [
    # config.py
    "AppConfig",
    # transaction.py
    "BatchResult",
    # catalog.py
    "Catalog",
    "CatalogTool",
    "InstallResult",
    "InstallStage",
    "InstallationTransaction",
    # tool.py
    "InstalledRecord",
    "Ledger",
    "LocalConfig",
    "OutdatedEntry",
    "RegistryConfig",
    "ResolvedVersion",
    "SecurityLimits",
    "ToolIdentity",
    "ToolKind",
    "TransactionOutcome",
    "UpdateResult",
    "VersionInfo",
]
