"""SQL predicates for conversation keys."""
from __future__ import annotations

from sqlalchemy import ColumnElement, and_, or_

from rental_chat.domain.value_objects.conversation_key import ConnectionKey, ConversationKey
from rental_chat.infrastructure.db.models.message import MessageModel


def key_clause(key: ConversationKey) -> ColumnElement[bool]:
    if isinstance(key, ConnectionKey):
        return MessageModel.connection_id == key.connection_id
    return or_(
        and_(MessageModel.sender_id == key.low, MessageModel.receiver_id == key.high),
        and_(MessageModel.sender_id == key.high, MessageModel.receiver_id == key.low),
    )
