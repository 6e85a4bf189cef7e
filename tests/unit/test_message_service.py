from __future__ import annotations

import uuid

import pytest

from rental_chat.application.dto.events import MESSAGE_INSERTED
from rental_chat.application.exceptions import (
    ForbiddenError,
    MarkReadFailedError,
    NotFoundError,
    ValidationError,
)
from rental_chat.domain.value_objects.conversation_key import ConnectionKey, ParticipantPairKey
from rental_chat.domain.value_objects.enums import ConnectionStatus
from rental_chat.services import message_service, read_state_service
from tests.conftest import make_message, make_profile


@pytest.mark.asyncio
async def test_send_message_persists_and_stages_event(tenant_principal, landlord, connection, uow):
    msg = await message_service.send_message(tenant_principal, landlord.id, "  Leaking tap  ", uow)

    assert msg.content == "Leaking tap"
    assert msg.read is False
    assert msg.connection_id == connection.id
    assert msg.sender_id == tenant_principal.profile_id
    assert uow._committed is True

    [record] = uow.outbox._records
    assert record["event_type"] == MESSAGE_INSERTED
    assert record["payload"]["id"] == str(msg.id)
    assert record["payload"]["receiver_id"] == str(landlord.id)
    assert record["payload"]["connection_id"] == str(connection.id)


@pytest.mark.asyncio
async def test_send_blank_message_rejected(tenant_principal, landlord, connection, uow):
    with pytest.raises(ValidationError):
        await message_service.send_message(tenant_principal, landlord.id, "   ", uow)
    assert uow.messages._messages == []
    assert uow.outbox._records == []


@pytest.mark.asyncio
async def test_send_to_stranger_forbidden(tenant_principal, connection, uow):
    with pytest.raises(ForbiddenError):
        await message_service.send_message(tenant_principal, uuid.uuid4(), "hi", uow)


@pytest.mark.asyncio
async def test_send_to_self_forbidden(tenant_principal, connection, uow):
    with pytest.raises(ForbiddenError):
        await message_service.send_message(tenant_principal, tenant_principal.profile_id, "hi", uow)


@pytest.mark.asyncio
async def test_send_over_inactive_connection_forbidden(tenant_principal, tenant, uow):
    other = make_profile("landlord")
    uow.connections.connect(tenant, other, status=ConnectionStatus.INACTIVE)

    with pytest.raises(ForbiddenError):
        await message_service.send_message(tenant_principal, other.id, "hi", uow)


@pytest.mark.asyncio
async def test_list_messages_by_pair_and_by_connection(tenant_principal, tenant, landlord, connection, uow):
    stamped = make_message(tenant.id, landlord.id, connection_id=connection.id)
    legacy = make_message(landlord.id, tenant.id)
    unrelated = make_message(landlord.id, uuid.uuid4())
    uow.messages.add(legacy, stamped, unrelated)

    by_pair = await message_service.list_messages(
        tenant_principal, ParticipantPairKey.of(tenant.id, landlord.id), uow,
    )
    by_conn = await message_service.list_messages(tenant_principal, ConnectionKey(connection.id), uow)

    assert [m.id for m in by_pair] == [stamped.id, legacy.id]
    assert [m.id for m in by_conn] == [stamped.id]


@pytest.mark.asyncio
async def test_list_messages_of_foreign_conversation_forbidden(tenant_principal, landlord, connection, uow):
    key = ParticipantPairKey.of(landlord.id, uuid.uuid4())
    with pytest.raises(ForbiddenError):
        await message_service.list_messages(tenant_principal, key, uow)


@pytest.mark.asyncio
async def test_list_messages_unknown_connection(tenant_principal, connection, uow):
    with pytest.raises(NotFoundError):
        await message_service.list_messages(tenant_principal, ConnectionKey(uuid.uuid4()), uow)


@pytest.mark.asyncio
async def test_conversation_history_marks_incoming_read(tenant_principal, tenant, landlord, connection, uow):
    incoming = make_message(landlord.id, tenant.id)
    outgoing = make_message(tenant.id, landlord.id)
    uow.messages.add(incoming, outgoing)

    history = await message_service.conversation_history(tenant_principal, landlord.id, uow)

    assert [m.id for m in history] == [incoming.id, outgoing.id]
    assert history[0].read is True
    assert history[1].read is False
    assert (await uow.messages.get_by_id(incoming.id)).read is True


@pytest.mark.asyncio
async def test_mark_message_read_receiver_only(tenant_principal, landlord_principal, tenant, landlord, connection, uow):
    msg = make_message(landlord.id, tenant.id)
    uow.messages.add(msg)

    with pytest.raises(ForbiddenError):
        await read_state_service.mark_message_read(landlord_principal, msg.id, uow)

    updated = await read_state_service.mark_message_read(tenant_principal, msg.id, uow)
    assert updated.read is True
    assert (await uow.messages.get_by_id(msg.id)).read is True


@pytest.mark.asyncio
async def test_mark_message_read_missing(tenant_principal, uow):
    with pytest.raises(NotFoundError):
        await read_state_service.mark_message_read(tenant_principal, uuid.uuid4(), uow)


@pytest.mark.asyncio
async def test_mark_conversation_read_returns_flipped_ids(landlord_principal, tenant, landlord, connection, uow):
    first = make_message(tenant.id, landlord.id)
    second = make_message(tenant.id, landlord.id, read=True)
    mine = make_message(landlord.id, tenant.id)
    uow.messages.add(first, second, mine)

    flipped = await read_state_service.mark_conversation_read(
        landlord_principal, ParticipantPairKey.of(tenant.id, landlord.id), uow,
    )

    assert flipped == [first.id]
    assert (await uow.messages.get_by_id(mine.id)).read is False


@pytest.mark.asyncio
async def test_mark_read_backend_failure_is_wrapped(tenant_principal, tenant, landlord, connection, uow):
    msg = make_message(landlord.id, tenant.id)
    uow.messages.add(msg)
    uow.messages_w.fail_mark_read = ConnectionError("db down")

    with pytest.raises(MarkReadFailedError):
        await read_state_service.mark_message_read(tenant_principal, msg.id, uow)
