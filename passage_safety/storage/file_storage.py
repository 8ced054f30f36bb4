"""File-based storage implementations.

FileAuditSink appends audit entries as JSON Lines, partitioned by hour:
base_dir/YYYY/MM/DD/HH/audit.jsonl

FileAreaStore reads restricted areas from a YAML document, either a list
of area mappings or a mapping with an ``areas`` key.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import structlog
import yaml

from passage_safety.core.models import AuditEntry

log = structlog.get_logger()


class FileAuditSink:
    """AuditSink backed by date/hour partitioned files on disk."""

    FILENAME = "audit.jsonl"

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _hour_dir(self, timestamp: str) -> Path:
        """Return the directory for an entry timestamp."""
        dt = datetime.fromisoformat(timestamp)
        path = self._base_dir / f"{dt.year:04d}" / f"{dt.month:02d}" / f"{dt.day:02d}" / f"{dt.hour:02d}"
        path.mkdir(parents=True, exist_ok=True)
        return path

    async def insert(self, entry: AuditEntry) -> None:
        hour_dir = self._hour_dir(entry.timestamp)
        line = json.dumps(entry.to_dict(), separators=(",", ":"), default=str)
        with open(hour_dir / self.FILENAME, "a") as f:
            f.write(line + "\n")

        log.debug("audit_entry_written", audit_id=entry.id, path=str(hour_dir))

    def read_all(self) -> list[AuditEntry]:
        """Every stored entry, oldest partition first."""
        entries: list[AuditEntry] = []
        for path in sorted(self._base_dir.rglob(self.FILENAME)):
            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError):
                        log.warning("audit_line_unreadable", path=str(path))
        return entries

    async def query_by_request_id(self, request_id: str) -> list[AuditEntry]:
        found = [e for e in self.read_all() if e.request_id == request_id]
        found.sort(key=lambda e: e.timestamp)
        return found

    async def query_critical(self, start: datetime, end: datetime, limit: int = 100) -> list[AuditEntry]:
        found = [
            e for e in self.read_all()
            if e.result == "critical" and start <= datetime.fromisoformat(e.timestamp) <= end
        ]
        found.sort(key=lambda e: e.timestamp, reverse=True)
        return found[:limit]

    async def query_overrides(
        self, start: datetime, end: datetime, user_id: str | None = None,
    ) -> list[AuditEntry]:
        found = [
            e for e in self.read_all()
            if e.action == "override_applied"
            and start <= datetime.fromisoformat(e.timestamp) <= end
            and (user_id is None or e.user_id == user_id)
        ]
        found.sort(key=lambda e: e.timestamp, reverse=True)
        return found


class FileAreaStore:
    """AreaStore backed by a YAML file, re-read on every query."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def query_active_areas(self) -> list[dict]:
        with open(self._path) as f:
            raw = yaml.safe_load(f) or []

        if isinstance(raw, dict):
            raw = raw.get("areas") or []
        if not isinstance(raw, list):
            raise ValueError(f"{self._path}: expected a list of areas")

        rows = [r for r in raw if isinstance(r, dict) and r.get("active", True)]
        log.debug("area_file_read", path=str(self._path), rows=len(rows))
        return rows
