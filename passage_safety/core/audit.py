"""Safety audit log: append-only record of every safety decision.

The in-memory ring buffer is the source of truth for the process lifetime.
When a durable sink is configured, each entry is also put on a queue that
a background task drains into the sink. Sink failures are logged and
dropped; they never reach the caller of a ``log_*`` method.
"""

from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Sequence

import structlog

from passage_safety.core.models import AuditEntry, SafetyOverride, Waypoint

if TYPE_CHECKING:
    from passage_safety.queue.base import AuditQueue
    from passage_safety.storage.base import AuditSink

log = structlog.get_logger()

DEFAULT_BUFFER_SIZE = 1000

LOW_CONFIDENCE = frozenset({"unknown", "low"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_range(entry: AuditEntry, start: datetime, end: datetime) -> bool:
    ts = datetime.fromisoformat(entry.timestamp)
    return start <= ts <= end


class SafetyAuditLog:
    """Ring buffer of audit entries with optional write-behind to a sink."""

    def __init__(
        self,
        sink: AuditSink | None = None,
        queue: AuditQueue | None = None,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        clock: Callable[[], datetime] = _utcnow,
        logger: Any = None,
    ) -> None:
        if sink is not None and queue is None:
            raise ValueError("a durable audit sink needs a queue to write behind")
        self._sink = sink
        self._queue = queue
        self._clock = clock
        self._log = logger or log
        self._entries: deque[AuditEntry] = deque(maxlen=buffer_size)
        self._writer_active = False
        self.sink_failures = 0

    # -- Recording -------------------------------------------------------------

    def log_route_analysis(
        self,
        request_id: str,
        user_id: str | None,
        route: Sequence[Waypoint],
        hazards_found: int,
        warnings_issued: int,
        safety_score: str,
        data_sources: Sequence[str],
        confidence: str,
    ) -> AuditEntry:
        entry = self._record(
            request_id, user_id, "route_analyzed",
            details={
                "route": [p.to_dict() for p in route],
                "hazards_found": hazards_found,
                "warnings_issued": warnings_issued,
                "safety_score": safety_score,
                "data_sources": list(data_sources),
                "confidence": confidence,
            },
            result="warning" if hazards_found > 0 else "success",
        )
        emit = self._log.warning if hazards_found > 0 else self._log.info
        emit("route_analyzed", audit_id=entry.id, request_id=request_id, user_id=user_id,
             waypoints=len(route), hazards_found=hazards_found,
             warnings_issued=warnings_issued, safety_score=safety_score,
             confidence=confidence)
        return entry

    def log_warning_generated(
        self,
        request_id: str,
        user_id: str | None,
        warning_type: str,
        severity: str,
        location: Waypoint | None,
        description: str,
    ) -> AuditEntry:
        entry = self._record(
            request_id, user_id, "warning_generated",
            details={
                "warning_type": warning_type,
                "severity": severity,
                "location": location.to_dict() if location else None,
                "description": description,
            },
            result="critical" if severity in ("critical", "urgent") else "warning",
        )
        self._log.warning("warning_generated", audit_id=entry.id, request_id=request_id,
                          user_id=user_id, warning_type=warning_type, severity=severity,
                          description=description)
        return entry

    def log_override(self, request_id: str, override: SafetyOverride) -> AuditEntry:
        # Overrides are always critical for review.
        entry = self._record(
            request_id, override.user_id, "override_applied",
            details={"override": override.to_dict()},
            result="critical",
        )
        self._log.warning("override_applied", audit_id=entry.id, request_id=request_id,
                          user_id=override.user_id, warning_id=override.warning_id,
                          warning_type=override.warning_type,
                          justification=override.justification)
        return entry

    def log_hazard_detected(
        self,
        request_id: str,
        user_id: str | None,
        hazard_type: str,
        location: Waypoint | None,
        severity: str,
        description: str,
    ) -> AuditEntry:
        entry = self._record(
            request_id, user_id, "hazard_detected",
            details={
                "hazard_type": hazard_type,
                "location": location.to_dict() if location else None,
                "severity": severity,
                "description": description,
            },
            result="critical" if severity == "critical" else "warning",
        )
        self._log.warning("hazard_detected", audit_id=entry.id, request_id=request_id,
                          user_id=user_id, hazard_type=hazard_type, severity=severity,
                          description=description)
        return entry

    def log_data_source(
        self,
        request_id: str,
        data_type: str,
        source: str,
        confidence: str,
        location: Waypoint | None = None,
    ) -> AuditEntry:
        low = confidence in LOW_CONFIDENCE
        entry = self._record(
            request_id, None, "data_source_used",
            details={
                "data_type": data_type,
                "source": source,
                "confidence": confidence,
                "location": location.to_dict() if location else None,
            },
            result="warning" if low else "success",
        )
        emit = self._log.warning if low else self._log.debug
        emit("data_source_used", audit_id=entry.id, request_id=request_id,
             data_type=data_type, source=source, confidence=confidence)
        return entry

    def log_recommendation(
        self,
        request_id: str,
        user_id: str | None,
        recommendation_type: str,
        priority: str,
        description: str,
    ) -> AuditEntry:
        entry = self._record(
            request_id, user_id, "recommendation_made",
            details={
                "recommendation_type": recommendation_type,
                "priority": priority,
                "description": description,
            },
            result="critical" if priority == "critical" else "success",
        )
        self._log.info("recommendation_made", audit_id=entry.id, request_id=request_id,
                       user_id=user_id, recommendation_type=recommendation_type,
                       priority=priority)
        return entry

    def _record(
        self,
        request_id: str,
        user_id: str | None,
        action: str,
        details: dict[str, Any],
        result: str,
    ) -> AuditEntry:
        entry = AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=self._clock().isoformat(),
            request_id=request_id,
            action=action,
            details=details,
            result=result,
            user_id=user_id,
        )
        self._entries.append(entry)

        if self._queue is not None:
            try:
                self._queue.put_nowait(entry)
            except Exception:
                self.sink_failures += 1
                self._log.error("audit_enqueue_failed", audit_id=entry.id,
                                action=action, exc_info=True)
        return entry

    # -- Durable sink ----------------------------------------------------------

    async def _persist(self, entry: AuditEntry) -> None:
        try:
            await self._sink.insert(entry)
        except Exception:
            self.sink_failures += 1
            self._log.error("audit_persist_failed", audit_id=entry.id,
                            action=entry.action, exc_info=True)

    async def run_sink_writer(self) -> None:
        """Drain the queue into the sink. Runs as a background task."""
        if self._sink is None or self._queue is None:
            return
        self._writer_active = True
        self._log.info("audit_sink_writer_started")
        try:
            while True:
                entry = await self._queue.get()
                try:
                    await self._persist(entry)
                finally:
                    self._queue.task_done()
        finally:
            self._writer_active = False

    async def flush_pending_writes(self) -> None:
        """Wait until every queued entry has reached the sink (or failed)."""
        if self._sink is None or self._queue is None:
            return
        if self._writer_active:
            await self._queue.join()
            return
        while self._queue.qsize() > 0:
            entry = self._queue.get_nowait()
            try:
                await self._persist(entry)
            finally:
                self._queue.task_done()

    def pending_writes(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    # -- In-memory queries -----------------------------------------------------

    def get_recent_logs(self, count: int = 100) -> list[AuditEntry]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def get_logs_by_request_id(self, request_id: str) -> list[AuditEntry]:
        return [e for e in self._entries if e.request_id == request_id]

    def get_critical_logs(self, count: int = 50) -> list[AuditEntry]:
        if count <= 0:
            return []
        return [e for e in self._entries if e.result == "critical"][-count:]

    def export_logs(self) -> list[AuditEntry]:
        return list(self._entries)

    def clear_logs(self) -> None:
        self._entries.clear()
        self._log.info("audit_logs_cleared")

    # -- Durable queries (fall back to memory) ---------------------------------

    async def query_logs_by_request_id(self, request_id: str) -> list[AuditEntry]:
        if self._sink is None:
            return self.get_logs_by_request_id(request_id)
        try:
            return await self._sink.query_by_request_id(request_id)
        except Exception:
            self._log.error("audit_query_failed", query="by_request_id",
                            request_id=request_id, exc_info=True)
            return self.get_logs_by_request_id(request_id)

    async def query_critical_logs(
        self, start: datetime, end: datetime, limit: int = 100,
    ) -> list[AuditEntry]:
        if self._sink is not None:
            try:
                return await self._sink.query_critical(start, end, limit)
            except Exception:
                self._log.error("audit_query_failed", query="critical", exc_info=True)
        found = [e for e in self._entries if e.result == "critical" and _in_range(e, start, end)]
        found.reverse()
        return found[:limit]

    async def query_overrides(
        self, start: datetime, end: datetime, user_id: str | None = None,
    ) -> list[AuditEntry]:
        if self._sink is not None:
            try:
                return await self._sink.query_overrides(start, end, user_id)
            except Exception:
                self._log.error("audit_query_failed", query="overrides",
                                user_id=user_id, exc_info=True)
        found = [
            e for e in self._entries
            if e.action == "override_applied"
            and _in_range(e, start, end)
            and (user_id is None or e.user_id == user_id)
        ]
        found.reverse()
        return found
