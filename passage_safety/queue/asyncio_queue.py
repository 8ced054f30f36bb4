"""In-process asyncio queue implementation of AuditQueue."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from passage_safety.core.models import AuditEntry


class AsyncioAuditQueue:
    """AuditQueue backed by asyncio.Queue. Zero dependencies."""

    def __init__(self, max_size: int = 10_000) -> None:
        self._queue: asyncio.Queue[AuditEntry] = asyncio.Queue(maxsize=max_size)

    def put_nowait(self, entry: AuditEntry) -> None:
        self._queue.put_nowait(entry)

    async def get(self) -> AuditEntry:
        return await self._queue.get()

    def get_nowait(self) -> AuditEntry:
        return self._queue.get_nowait()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()
