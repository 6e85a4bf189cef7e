from __future__ import annotations

from uuid import UUID

from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import ForbiddenError, NotFoundError
from rental_chat.application.repositories.connection import ConnectionReader
from rental_chat.domain.entities.connection import TenantLandlordConnection
from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.conversation_key import (
    ConnectionKey,
    ConversationKey,
    ParticipantPairKey,
)
from rental_chat.domain.value_objects.enums import ConnectionStatus


async def assert_chat_partner(
    principal: Principal,
    partner_id: UUID,
    connections: ConnectionReader,
) -> TenantLandlordConnection:
    """Raise unless an active tenant↔landlord connection links the two profiles."""
    if partner_id == principal.profile_id:
        raise ForbiddenError("Cannot message yourself")
    connection = await connections.get_between(principal.profile_id, partner_id)
    if connection is None:
        raise ForbiddenError("Not a chat partner")
    return connection


async def assert_conversation_access(
    principal: Principal,
    key: ConversationKey,
    connections: ConnectionReader,
) -> None:
    """Raise if the principal is not one of the conversation's two parties."""
    if isinstance(key, ParticipantPairKey):
        if not key.involves(principal.profile_id):
            raise ForbiddenError("Not a participant of this conversation")
        await assert_chat_partner(principal, key.other(principal.profile_id), connections)
        return

    assert isinstance(key, ConnectionKey)
    connection = await connections.get_by_id(key.connection_id)
    if connection is None:
        raise NotFoundError("Conversation not found")
    if principal.profile_id not in (connection.tenant_id, connection.landlord_id):
        raise ForbiddenError("Not a participant of this conversation")
    if connection.status != ConnectionStatus.ACTIVE:
        raise ForbiddenError("Connection is not active")


def assert_receiver(principal: Principal, message: Message | None) -> Message:
    """Only the receiver may flip a message's read flag."""
    if message is None:
        raise NotFoundError("Message not found")
    if message.receiver_id != principal.profile_id:
        raise ForbiddenError("Only the receiver can mark a message as read")
    return message
