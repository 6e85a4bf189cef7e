from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rental_chat.application.repositories.outbox import OutboxRecord
from rental_chat.domain.value_objects.enums import OutboxStatus
from rental_chat.infrastructure.db.models.outbox import OutboxMessageModel


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._session.add(OutboxMessageModel(event_type=event_type, payload=payload))
        await self._session.flush()

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        now = datetime.now(timezone.utc)
        due = (
            select(OutboxMessageModel)
            .where(
                OutboxMessageModel.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]),
                OutboxMessageModel.next_retry_at.is_(None) | (OutboxMessageModel.next_retry_at <= now),
            )
            .order_by(OutboxMessageModel.created_at.asc(), OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        rows = (await self._session.execute(due)).scalars().all()
        if not rows:
            return []

        # Other workers skip claimed rows until this transaction settles them.
        await self._set_status([r.id for r in rows], OutboxStatus.PROCESSING)
        return [
            OutboxRecord(id=r.id, event_type=r.event_type, payload=r.payload, attempts=r.attempts)
            for r in rows
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        await self._set_status(ids, OutboxStatus.SENT)

    async def mark_dead(self, ids: list[int]) -> None:
        await self._set_status(ids, OutboxStatus.DEAD)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.FAILED,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )

    async def _set_status(self, ids: list[int], status: OutboxStatus) -> None:
        if not ids:
            return
        await self._session.execute(
            update(OutboxMessageModel).where(OutboxMessageModel.id.in_(ids)).values(status=status)
        )
        await self._session.flush()
