"""
Operation journal — append-only history of install/uninstall/update.

Every orchestrated operation appends one NDJSON line to
``<workspace>/.toolpack/journal.ndjson``.  Useful for answering
"what changed in this workspace, and when" after the fact.

The journal is append-only: entries are never modified or deleted.
Writing is best-effort; a failed write is logged and the operation
result is unaffected.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_JOURNAL_DIR = ".toolpack"
DEFAULT_JOURNAL_FILE = "journal.ndjson"


class JournalEntry(BaseModel):
    """A single journal entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation: str = ""            # install, uninstall, update
    tool: str = ""
    kind: str = ""

    status: str = ""               # ok, skipped, failed, rolled_back
    old_version: str | None = None
    new_version: str | None = None
    stage: str | None = None       # stage reached when it failed
    error: str | None = None
    duration_ms: int = 0


class JournalWriter:
    """Append-only journal writer."""

    def __init__(self, path: Path | None = None, workspace: Path | None = None):
        if path is not None:
            self._path = path
        elif workspace is not None:
            self._path = workspace / DEFAULT_JOURNAL_DIR / DEFAULT_JOURNAL_FILE
        else:
            self._path = Path(DEFAULT_JOURNAL_DIR) / DEFAULT_JOURNAL_FILE
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: JournalEntry) -> None:
        """Append an entry to the journal."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(line)
            logger.debug("Journal entry written: %s %s", entry.operation, entry.tool)
        except OSError as e:
            logger.error("Failed to write journal entry: %s", e)

    def read_all(self) -> list[JournalEntry]:
        """Read all entries, oldest first.  Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(JournalEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt journal entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read journal: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[JournalEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
