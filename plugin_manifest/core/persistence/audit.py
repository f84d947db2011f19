"""
Audit log — append-only history of install runs.

Every module install (outside dry-run) writes one entry to an NDJSON
(newline-delimited JSON) file. Where the ledger answers "is this
operation done?", the audit log answers "what happened, and when?".

Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from plugin_manifest.core.models.project import DEFAULT_AUDIT_LOG

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation_type: str = ""       # install, install-dependencies

    # What happened
    module: str = ""
    tags: list[str] = Field(default_factory=list)
    options: dict[str, bool] = Field(default_factory=dict)

    # Results
    status: str = ""               # ok, partial, failed
    assets_total: int = 0
    assets_installed: int = 0
    assets_skipped: int = 0
    assets_failed: int = 0
    duration_ms: int = 0

    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit log writer.

    Each call to write() appends a single JSON line. The file and its
    directory are created on first write.
    """

    def __init__(self, path: Path | None = None, project_root: Path | None = None):
        if path is not None:
            self._path = path
        elif project_root is not None:
            self._path = project_root / DEFAULT_AUDIT_LOG
        else:
            self._path = Path(DEFAULT_AUDIT_LOG)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry. Write failures are logged, not raised."""
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.operation_type, entry.module)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
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
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit log: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """The most recent ``n`` entries."""
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
