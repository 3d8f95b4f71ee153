"""Control panel audit logging.

Entries can be written inline with :meth:`AuditLog.record` or handed to a
bounded queue with :meth:`AuditLog.submit`, which a single worker task
drains in the background. The queue is flushed on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from reddit_feeds.shared.database import get_db_session_context
from reddit_feeds.web.crud import CPLogOperations
from reddit_feeds.web.metrics import AUDIT_ENTRIES_DROPPED, AUDIT_ENTRIES_FAILED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    """One administrative action attributed to a user and guild."""

    guild_id: str
    user_id: str
    username: str
    action: str


AuditSink = Callable[[AuditEntry], Awaitable[None]]


async def write_cp_log_entry(entry: AuditEntry) -> None:
    """Persist an entry to the control panel log table."""
    async with get_db_session_context() as session:
        await CPLogOperations().add_entry(
            session,
            guild_id=entry.guild_id,
            user_id=entry.user_id,
            username=entry.username,
            action=entry.action
        )


class AuditLog:
    """Audit log writer with a bounded background queue."""

    def __init__(self, sink: AuditSink = write_cp_log_entry, maxsize: int = 1000):
        self._sink = sink
        self._queue: asyncio.Queue[AuditEntry] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker task on the running event loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="cp-audit-log")
            logger.info("Audit log worker started")

    def submit(self, entry: AuditEntry) -> bool:
        """Queue an entry without waiting for it to be written.

        Returns:
            bool: False if the queue was full and the entry was dropped
        """
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            AUDIT_ENTRIES_DROPPED.inc()
            logger.warning(
                f"Audit log queue full, dropped entry for guild {entry.guild_id}: {entry.action}"
            )
            return False
        return True

    async def record(self, entry: AuditEntry) -> None:
        """Write an entry immediately. Failures are logged, not raised."""
        await self._write(entry)

    async def stop(self, timeout: float = 10.0) -> None:
        """Flush queued entries and stop the worker."""
        if self._worker is not None and not self._worker.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except asyncio.TimeoutError:
                logger.error(f"Audit log drain timed out, {self._queue.qsize()} entries lost")
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        else:
            while not self._queue.empty():
                await self._write(self._queue.get_nowait())
                self._queue.task_done()
        logger.info("Audit log worker stopped")

    async def _run(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._write(entry)
            finally:
                self._queue.task_done()

    async def _write(self, entry: AuditEntry) -> None:
        try:
            await self._sink(entry)
        except Exception as e:
            AUDIT_ENTRIES_FAILED.inc()
            logger.error(f"Failed to write audit log entry for guild {entry.guild_id}: {e}")
