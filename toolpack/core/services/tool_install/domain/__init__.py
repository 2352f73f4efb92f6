"""
L1 Domain — ``__init__.py`` re-exports all pure domain functions.

These functions have NO subprocess calls, NO filesystem access,
NO network calls. Pure input→output.
"""

from toolpack.core.services.tool_install.domain.paths import (  # noqa: F401
    backup_path,
    install_path,
)
from toolpack.core.services.tool_install.domain.specifiers import (  # noqa: F401
    ToolSpec,
    parse_spec,
)
from toolpack.core.services.tool_install.domain.versioning import (  # noqa: F401
    compare_versions,
    is_valid_version,
    same_version,
)
