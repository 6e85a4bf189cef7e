from __future__ import annotations

from typing import Protocol
from uuid import UUID

from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.conversation_key import ConversationKey


class MessageReader(Protocol):
    async def list_messages(
        self,
        key: ConversationKey,
        *,
        limit: int = 500,
    ) -> list[Message]:
        """Messages of one conversation, oldest first."""
        ...

    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def count_unread(self, sender_id: UUID, receiver_id: UUID) -> int: ...


class MessageWriter(Protocol):
    async def insert(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        content: str,
        *,
        connection_id: UUID | None = None,
    ) -> Message:
        """Insert an unread message. Persistence assigns ``id`` and ``created_at``."""
        ...

    async def mark_conversation_read(self, key: ConversationKey, reader_id: UUID) -> list[UUID]:
        """Mark every unread message addressed to ``reader_id`` read. Return their ids."""
        ...

    async def mark_read(self, message_id: UUID, reader_id: UUID) -> bool:
        """Mark one message read if ``reader_id`` is its receiver."""
        ...
