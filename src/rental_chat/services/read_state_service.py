from __future__ import annotations

import dataclasses
import uuid

from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import AppError, MarkReadFailedError
from rental_chat.application.policies.permissions import (
    assert_conversation_access,
    assert_receiver,
)
from rental_chat.application.uow import UnitOfWork
from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.conversation_key import ConversationKey


async def mark_conversation_read(
    principal: Principal,
    key: ConversationKey,
    uow: UnitOfWork,
) -> list[uuid.UUID]:
    """Bulk-mark messages addressed to the principal. Returns the ids flipped."""
    await assert_conversation_access(principal, key, uow.connections)
    try:
        ids = await uow.messages_w.mark_conversation_read(key, principal.profile_id)
        await uow.commit()
    except AppError:
        raise
    except Exception as exc:
        raise MarkReadFailedError(f"Could not mark {key} read") from exc
    return ids


async def mark_message_read(
    principal: Principal,
    message_id: uuid.UUID,
    uow: UnitOfWork,
) -> Message:
    message = assert_receiver(principal, await uow.messages.get_by_id(message_id))
    if message.read:
        return message
    try:
        await uow.messages_w.mark_read(message_id, principal.profile_id)
        await uow.commit()
    except AppError:
        raise
    except Exception as exc:
        raise MarkReadFailedError(f"Could not mark message {message_id} read") from exc
    return dataclasses.replace(message, read=True)
