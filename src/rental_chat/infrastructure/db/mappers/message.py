from __future__ import annotations

from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        connection_id=model.connection_id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        content=model.content,
        created_at=model.created_at,
        read=model.read,
    )
