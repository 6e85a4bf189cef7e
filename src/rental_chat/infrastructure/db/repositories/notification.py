from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from rental_chat.domain.entities.notification import Notification
from rental_chat.infrastructure.db.mappers import notification as mapper
from rental_chat.infrastructure.db.models.notification import NotificationModel


class NotificationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: UUID, *, limit: int = 50) -> list[Notification]:
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_unread(self, user_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(NotificationModel)
            .where(
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        model = await self._session.get(NotificationModel, notification_id)
        return mapper.model_to_entity(model) if model else None


class NotificationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> Notification:
        stmt = (
            pg_insert(NotificationModel)
            .values(
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                is_read=False,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
            )
            .returning(NotificationModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def mark_read(self, notification_id: UUID) -> None:
        await self._session.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .values(is_read=True)
        )

    async def mark_all_read(self, user_id: UUID) -> int:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True)
            .returning(NotificationModel.id)
        )
        result = await self._session.execute(stmt)
        return len(result.scalars().all())
