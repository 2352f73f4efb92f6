"""
L5 Orchestration — installer and updater.
"""

from toolpack.core.services.tool_install.orchestration.installer import Installer  # noqa: F401
from toolpack.core.services.tool_install.orchestration.protocols import (  # noqa: F401
    CatalogClient,
    Downloader,
    Extractor,
    LedgerStore,
)
from toolpack.core.services.tool_install.orchestration.updater import Updater  # noqa: F401
