"""
Catalog cache — a TTL'd on-disk copy of ``registry.json``.

Layout under ``cache_dir``::

    registry.json    the last catalog document fetched
    metadata.json    {"source": ..., "fetched_at": <epoch seconds>}

The cache is never authoritative: an unreadable or stale entry is a
miss, and the catalog is fetched again.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from toolpack.core.models.catalog import Catalog

logger = logging.getLogger(__name__)

CATALOG_FILE = "registry.json"
METADATA_FILE = "metadata.json"
DEFAULT_TTL = 3600


def default_cache_dir() -> Path:
    """``$XDG_CACHE_HOME/toolpack``, falling back to ``~/.cache/toolpack``."""
    base = os.environ.get("XDG_CACHE_HOME")
    return (Path(base) if base else Path.home() / ".cache") / "toolpack"


class CatalogCache:
    """TTL file cache for one catalog source at a time."""

    def __init__(
        self,
        cache_dir: Path | None = None,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.ttl = ttl
        self._clock = clock

    @property
    def catalog_path(self) -> Path:
        return self.cache_dir / CATALOG_FILE

    @property
    def metadata_path(self) -> Path:
        return self.cache_dir / METADATA_FILE

    def is_valid(self, source: str) -> bool:
        """True when a fresh entry for ``source`` exists."""
        meta = self._read_metadata()
        if meta is None or meta.get("source") != source:
            return False
        fetched_at = meta.get("fetched_at")
        if not isinstance(fetched_at, (int, float)):
            return False
        return (self._clock() - fetched_at) < self.ttl and self.catalog_path.is_file()

    def get(self, source: str) -> Catalog | None:
        if not self.is_valid(source):
            return None
        try:
            data = json.loads(self.catalog_path.read_text(encoding="utf-8"))
            catalog = Catalog.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable catalog cache %s: %s", self.catalog_path, e)
            return None
        logger.debug("Catalog cache hit for %s", source)
        return catalog

    def put(self, source: str, catalog: Catalog) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._write_atomic(
            self.catalog_path,
            json.dumps(catalog.model_dump(mode="json", by_alias=True), indent=2),
        )
        self._write_atomic(
            self.metadata_path,
            json.dumps({"source": source, "fetched_at": self._clock()}, indent=2),
        )
        logger.debug("Catalog cached for %s", source)

    def invalidate(self) -> None:
        for path in (self.metadata_path, self.catalog_path):
            path.unlink(missing_ok=True)

    # ── Internals ──────────────────────────────────────────────

    def _read_metadata(self) -> dict | None:
        if not self.metadata_path.is_file():
            return None
        try:
            data = json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache metadata: %s", e)
            return None
        return data if isinstance(data, dict) else None

    def _write_atomic(self, path: Path, content: str) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
