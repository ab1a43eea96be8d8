"""Audit trail service.

Booking and order workflows hand audit events to an in-memory queue and move
on; a background consumer writes them to the ``audit_logs`` table in its own
session. A slow or failing audit store therefore never blocks, fails or rolls
back the operation that produced the event.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotel_reservations.config import settings
from hotel_reservations.models.admin import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    """One auditable change."""

    action: str
    resource_type: str
    resource_id: UUID | None
    user_id: UUID | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None


AuditSink = Callable[[AuditEvent], Awaitable[None]]


class AuditService:
    """Fire-and-forget audit logging."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        sink: AuditSink | None = None,
        maxsize: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._sink = sink or self.write_to_database
        self._maxsize = maxsize or settings.audit_queue_size
        self._queue: asyncio.Queue[AuditEvent] | None = None
        self._consumer: asyncio.Task | None = None
        self.dropped = 0

    @property
    def queue(self) -> asyncio.Queue[AuditEvent]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._maxsize)
        return self._queue

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def notify(self, event: AuditEvent) -> None:
        """Queue an event without waiting. Never raises."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Audit queue full, dropping {event.action} for {event.resource_type} {event.resource_id}"
            )

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | None,
        user_id: UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        """Build and queue an event."""
        self.notify(
            AuditEvent(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                user_id=user_id,
                old_values=old_values,
                new_values=new_values,
            )
        )

    async def start(self) -> None:
        """Start the background consumer."""
        if self.running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="audit-consumer")
        logger.info("Audit consumer started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Flush pending events (bounded) and stop the consumer."""
        if self._consumer is None:
            return
        try:
            await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Audit queue not drained, {self.queue.qsize()} events discarded")
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None
        logger.info("Audit consumer stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self.queue.join()

    async def _consume(self) -> None:
        queue = self.queue
        while True:
            event = await queue.get()
            try:
                await self._sink(event)
            except Exception as e:
                logger.error(
                    f"Failed to write audit event {event.action} "
                    f"for {event.resource_type} {event.resource_id}: {e}"
                )
            finally:
                queue.task_done()

    async def write_to_database(self, event: AuditEvent) -> None:
        """Default sink: persist the event as an AuditLog row."""
        if self._session_factory is None:
            from hotel_reservations.database import async_session_maker

            self._session_factory = async_session_maker

        async with self._session_factory() as db:
            db.add(
                AuditLog(
                    user_id=event.user_id,
                    action=event.action,
                    resource_type=event.resource_type,
                    resource_id=event.resource_id,
                    old_values=event.old_values,
                    new_values=event.new_values,
                )
            )
            await db.commit()

    async def list_logs(
        self,
        db: AsyncSession,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Most recent audit entries, optionally for one resource."""
        query = select(AuditLog)
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AuditLog.resource_id == resource_id)
        query = query.order_by(AuditLog.created_at.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())


audit_service = AuditService()
