"""
Tool installation service — package re-exports.

    from toolpack.core.services.tool_install import Installer, Updater

Each symbol lives in its single-responsibility module inside the
appropriate layer (domain → execution → orchestration).
"""

# ── L1: Domain ──
from toolpack.core.services.tool_install.domain.versioning import (  # noqa: F401
    compare_versions,
)

# ── L5: Orchestration ──
from toolpack.core.services.tool_install.orchestration.installer import (  # noqa: F401
    Installer,
)
from toolpack.core.services.tool_install.orchestration.updater import (  # noqa: F401
    Updater,
)
