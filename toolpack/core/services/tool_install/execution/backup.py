"""
L4 Execution — Destination backup and restore.

Before an update overwrites a tool directory, the old directory is
moved aside with a single ``os.rename`` (atomic on one filesystem).
Rollback renames it back; a successful commit deletes it.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from toolpack.core.errors import PermissionDeniedError, ToolpackError

logger = logging.getLogger(__name__)


def backup_destination(dest: Path, backup: Path) -> Path | None:
    """Move ``dest`` to ``backup``.

    Returns:
        ``backup`` if something was moved, ``None`` if ``dest`` did not
        exist.

    Raises:
        PermissionDeniedError: The rename was refused.
        ToolpackError: Any other OS failure; ``dest`` is untouched.
    """
    if not dest.exists():
        return None
    try:
        os.rename(dest, backup)
    except PermissionError as e:
        raise PermissionDeniedError(f"cannot back up {dest}: {e}", path=str(dest)) from e
    except OSError as e:
        raise ToolpackError(f"cannot back up {dest}: {e}", path=str(dest)) from e
    logger.debug("Backed up %s → %s", dest, backup)
    return backup


def restore_backup(backup: Path, dest: Path) -> None:
    """Put ``backup`` back at ``dest``, replacing whatever is there."""
    if dest.exists():
        shutil.rmtree(dest)
    os.rename(backup, dest)
    logger.info("Restored %s from backup", dest)


def discard_backup(backup: Path) -> None:
    """Delete a backup after a successful commit.

    A leftover backup does not undo the install, so failures are only
    logged.
    """
    try:
        shutil.rmtree(backup)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Could not remove backup %s: %s", backup, e)
        return
    logger.debug("Discarded backup %s", backup)
