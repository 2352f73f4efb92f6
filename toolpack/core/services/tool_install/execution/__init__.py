"""
L4 Execution — filesystem side effects of an install.
"""

from toolpack.core.services.tool_install.execution.backup import (  # noqa: F401
    backup_destination,
    discard_backup,
    restore_backup,
)
from toolpack.core.services.tool_install.execution.download import (  # noqa: F401
    cleanup_staging,
    stage_archive,
)
