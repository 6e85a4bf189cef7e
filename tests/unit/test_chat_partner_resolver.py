from __future__ import annotations

import uuid

import pytest

from rental_chat.application.exceptions import FetchFailedError, ValidationError
from rental_chat.domain.entities.profile import ChatPartner
from rental_chat.domain.value_objects.conversation_key import ConnectionKey, ParticipantPairKey
from rental_chat.domain.value_objects.enums import ConnectionStatus, ProfileType
from rental_chat.services import chat_partner_resolver
from tests.conftest import make_message, make_profile


@pytest.mark.asyncio
async def test_tenant_gets_oldest_active_landlord(tenant, uow):
    inactive = make_profile(ProfileType.LANDLORD, first_name="Old")
    first = make_profile(ProfileType.LANDLORD, first_name="First")
    second = make_profile(ProfileType.LANDLORD, first_name="Second")
    uow.connections.connect(tenant, inactive, status=ConnectionStatus.INACTIVE)
    uow.connections.connect(tenant, first)
    uow.connections.connect(tenant, second)

    partners = await chat_partner_resolver.resolve(tenant.id, ProfileType.TENANT, uow)

    assert [p.id for p in partners] == [first.id]
    assert partners[0].display_name == "First Doe"


@pytest.mark.asyncio
async def test_landlord_gets_every_tenant_with_unread_counts(landlord, uow):
    t1 = make_profile(ProfileType.TENANT, first_name="Ann")
    t2 = make_profile(ProfileType.TENANT, first_name="Ben")
    c1 = uow.connections.connect(t1, landlord)
    uow.connections.connect(t2, landlord)
    uow.messages.add(
        make_message(t1.id, landlord.id),
        make_message(t1.id, landlord.id),
        make_message(t1.id, landlord.id, read=True),
        make_message(landlord.id, t2.id),
    )

    partners = await chat_partner_resolver.resolve(landlord.id, ProfileType.LANDLORD, uow)

    assert [(p.id, p.unread_count) for p in partners] == [(t1.id, 2), (t2.id, 0)]
    assert partners[0].connection_id == c1.id


@pytest.mark.asyncio
async def test_no_relationship_yields_empty_list(tenant, uow):
    assert await chat_partner_resolver.resolve(tenant.id, ProfileType.TENANT, uow) == []


@pytest.mark.asyncio
async def test_unknown_profile_type_rejected(tenant, uow):
    with pytest.raises(ValidationError):
        await chat_partner_resolver.resolve(tenant.id, "admin", uow)


@pytest.mark.asyncio
async def test_backend_failure_is_fetch_failed(tenant, uow):
    uow.connections.fail = ConnectionError("db down")
    with pytest.raises(FetchFailedError):
        await chat_partner_resolver.resolve(tenant.id, ProfileType.TENANT, uow)


def test_select_partner_prefers_valid_deep_link():
    a = make_profile(ProfileType.TENANT)
    b = make_profile(ProfileType.TENANT)
    partners = [_partner(a), _partner(b)]

    assert chat_partner_resolver.select_partner(partners, b.id).id == b.id
    assert chat_partner_resolver.select_partner(partners, uuid.uuid4()).id == a.id
    assert chat_partner_resolver.select_partner(partners).id == a.id
    assert chat_partner_resolver.select_partner([], a.id) is None


def test_conversation_key_modes():
    me = uuid.uuid4()
    partner = _partner(make_profile(ProfileType.LANDLORD), connection_id=uuid.uuid4())

    assert chat_partner_resolver.conversation_key(me, partner, "pair") == ParticipantPairKey.of(partner.id, me)
    assert chat_partner_resolver.conversation_key(me, partner, "connection") == ConnectionKey(partner.connection_id)

    no_conn = _partner(make_profile(ProfileType.LANDLORD))
    assert isinstance(chat_partner_resolver.conversation_key(me, no_conn, "connection"), ParticipantPairKey)


def _partner(profile, connection_id=None):
    return ChatPartner(
        id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        profile_type=profile.profile_type,
        connection_id=connection_id,
    )
