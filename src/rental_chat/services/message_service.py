from __future__ import annotations

import dataclasses
from uuid import UUID

from rental_chat.application.dto.events import MESSAGE_INSERTED
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import ValidationError
from rental_chat.application.policies.permissions import (
    assert_chat_partner,
    assert_conversation_access,
)
from rental_chat.application.uow import UnitOfWork
from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.conversation_key import ConversationKey
from rental_chat.services.chat_partner_resolver import key_between


async def send_message(
    principal: Principal,
    receiver_id: UUID,
    content: str,
    uow: UnitOfWork,
) -> Message:
    """Persist an unread message and stage its live event in the same transaction.

    The message is stamped with the connection linking both profiles, so it is
    visible under the pair key and the connection key alike.
    """
    body = (content or "").strip()
    if not body:
        raise ValidationError("Message content must not be empty")

    connection = await assert_chat_partner(principal, receiver_id, uow.connections)

    msg = await uow.messages_w.insert(
        principal.profile_id,
        receiver_id,
        body,
        connection_id=connection.id,
    )
    await uow.outbox.add(
        MESSAGE_INSERTED,
        {
            "id": str(msg.id),
            "connection_id": str(msg.connection_id) if msg.connection_id else None,
            "sender_id": str(msg.sender_id),
            "receiver_id": str(msg.receiver_id),
            "content": msg.content,
            "created_at": msg.created_at.isoformat(),
            "read": msg.read,
        },
    )
    await uow.commit()
    return msg


async def list_messages(
    principal: Principal,
    key: ConversationKey,
    uow: UnitOfWork,
    *,
    limit: int = 500,
) -> list[Message]:
    await assert_conversation_access(principal, key, uow.connections)
    return await uow.messages.list_messages(key, limit=limit)


async def conversation_history(
    principal: Principal,
    partner_id: UUID,
    uow: UnitOfWork,
    *,
    limit: int = 500,
) -> list[Message]:
    """History with a partner; incoming unread messages are marked read on the way out."""
    connection = await assert_chat_partner(principal, partner_id, uow.connections)
    key = key_between(principal.profile_id, partner_id, connection.id)
    messages = await uow.messages.list_messages(key, limit=limit)
    flipped = set(await uow.messages_w.mark_conversation_read(key, principal.profile_id))
    await uow.commit()
    return [dataclasses.replace(m, read=True) if m.id in flipped else m for m in messages]
