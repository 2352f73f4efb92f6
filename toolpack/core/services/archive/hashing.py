"""
Content hashing and integrity verification.

Streaming SHA-256 so large archives never have to fit in memory.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from toolpack.core.errors import IntegrityError, ToolpackError

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def hash_file(path: Path) -> str:
    """Return the hex SHA-256 digest of ``path``.

    Raises:
        ToolpackError: The file cannot be read.
    """
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                h.update(chunk)
    except OSError as e:
        raise ToolpackError(f"cannot hash {path}: {e}", path=str(path)) from e
    return h.hexdigest()


def normalize_digest(digest: str) -> str:
    """Strip an optional ``sha256:`` prefix and lower-case."""
    return digest.strip().removeprefix("sha256:").lower()


def verify_file(path: Path, expected: str) -> str:
    """Recompute the digest of ``path`` and compare (case-insensitive).

    Returns:
        The actual digest.

    Raises:
        IntegrityError: The digests differ.
    """
    actual = hash_file(path)
    wanted = normalize_digest(expected)
    if actual != wanted:
        raise IntegrityError(
            f"integrity check failed: expected {wanted}, got {actual}",
            expected=wanted,
            actual=actual,
            path=str(path),
        )
    logger.debug("Integrity OK for %s (%s)", path, actual)
    return actual
