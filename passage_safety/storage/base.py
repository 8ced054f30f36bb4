"""Storage interfaces (ports) for restricted areas and the audit trail."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from passage_safety.core.models import AuditEntry


class AreaStore(Protocol):
    """Port: source of officially published restricted areas.

    Rows are plain mappings; optional fields may be missing (see
    ``passage_safety.core.areas.area_from_row``).
    """

    async def query_active_areas(self) -> list[dict]: ...


class AuditSink(Protocol):
    """Port: durable audit storage for post-incident investigation."""

    async def insert(self, entry: AuditEntry) -> None: ...

    async def query_by_request_id(self, request_id: str) -> list[AuditEntry]: ...

    async def query_critical(self, start: datetime, end: datetime, limit: int = 100) -> list[AuditEntry]: ...

    async def query_overrides(
        self, start: datetime, end: datetime, user_id: str | None = None,
    ) -> list[AuditEntry]: ...
