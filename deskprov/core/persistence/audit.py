"""
Run ledger — append-only history of provisioning runs.

Every run (dry runs included) appends one line to an NDJSON file.
Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class RunEntry(BaseModel):
    """A single ledger entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    dry_run: bool = False

    # Results
    status: str = ""               # ok, partial, failed, aborted
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    duration_ms: int = 0

    gpu_vendor: str = ""
    tools_installed: list[str] = Field(default_factory=list)
    tools_failed: list[str] = Field(default_factory=list)

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)


class RunLedger:
    """Append-only run ledger writer/reader."""

    def __init__(self, path: Path):
        self._path = path

    @classmethod
    def in_dir(cls, state_dir: Path | str) -> RunLedger:
        return cls(Path(state_dir) / DEFAULT_AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: RunEntry) -> None:
        """Append an entry to the ledger.  Write errors are logged, not raised."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s", entry.run_id)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)

    def read_all(self) -> list[RunEntry]:
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
                        entries.append(RunEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[RunEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]
