from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.conversation_key import ConversationKey
from rental_chat.infrastructure.db.mappers import message as mapper
from rental_chat.infrastructure.db.models.message import MessageModel
from rental_chat.infrastructure.db.repositories._keys import key_clause


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_messages(
        self,
        key: ConversationKey,
        *,
        limit: int = 500,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(key_clause(key))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_by_id(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def count_unread(self, sender_id: UUID, receiver_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(MessageModel)
            .where(
                MessageModel.sender_id == sender_id,
                MessageModel.receiver_id == receiver_id,
                MessageModel.read.is_(False),
            )
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        content: str,
        *,
        connection_id: UUID | None = None,
    ) -> Message:
        stmt = (
            pg_insert(MessageModel)
            .values(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                connection_id=connection_id,
                read=False,
            )
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def mark_conversation_read(self, key: ConversationKey, reader_id: UUID) -> list[UUID]:
        stmt = (
            update(MessageModel)
            .where(
                key_clause(key),
                MessageModel.receiver_id == reader_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, message_id: UUID, reader_id: UUID) -> bool:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.receiver_id == reader_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
