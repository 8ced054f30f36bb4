"""Queue interface (port) for write-behind audit persistence."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from passage_safety.core.models import AuditEntry


class AuditQueue(Protocol):
    """Port: buffers audit entries between the decision path and the sink.

    ``put_nowait`` must never block; it raises when the queue is full.
    """

    def put_nowait(self, entry: AuditEntry) -> None: ...

    async def get(self) -> AuditEntry: ...

    def get_nowait(self) -> AuditEntry: ...

    def task_done(self) -> None: ...

    async def join(self) -> None: ...

    def qsize(self) -> int: ...
