"""
Catalog — the remote registry, its cache, and the HTTP transport.
"""

from toolpack.core.services.catalog.cache import CatalogCache  # noqa: F401
from toolpack.core.services.catalog.github import (  # noqa: F401
    HttpDownloader,
    parse_repo_url,
    raw_content_url,
)
from toolpack.core.services.catalog.registry import RegistryCatalog  # noqa: F401
