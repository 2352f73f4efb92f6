"""
L4 Execution — Stage a downloaded archive in a private temp directory.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from toolpack.core.errors import PermissionDeniedError

if TYPE_CHECKING:
    from toolpack.core.services.tool_install.orchestration.protocols import Downloader

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "archive.zip"


def stage_archive(
    downloader: Downloader,
    url: str,
    *,
    expected_size: int = 0,
    cancel: threading.Event | None = None,
    prefix: str = "toolpack-",
) -> tuple[Path, Path]:
    """Download ``url`` into a fresh temp directory.

    Returns:
        ``(temp_dir, archive_path)``.  The caller owns ``temp_dir`` and
        must remove it with ``cleanup_staging``.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    archive = temp_dir / ARCHIVE_NAME
    try:
        data = downloader.fetch(url, expected_size, True, cancel)
        archive.write_bytes(data)
    except PermissionError as e:
        cleanup_staging(temp_dir)
        raise PermissionDeniedError(f"cannot write {archive}: {e}", path=str(archive)) from e
    except BaseException:
        cleanup_staging(temp_dir)
        raise
    logger.debug("Staged %d bytes from %s at %s", len(data), url, archive)
    return temp_dir, archive


def cleanup_staging(temp_dir: Path | None) -> None:
    if temp_dir is None:
        return
    shutil.rmtree(temp_dir, ignore_errors=True)
