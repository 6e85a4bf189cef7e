"""Who may a profile talk to.

Tenants talk to their landlord, landlords to each of their tenants. The
relationship is created at signup; an absent relationship yields an empty
list, which callers render as "no partner available".
"""
from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from rental_chat.application.exceptions import FetchFailedError, ValidationError
from rental_chat.application.uow import UnitOfWork
from rental_chat.config import settings
from rental_chat.domain.entities.profile import ChatPartner
from rental_chat.domain.value_objects.conversation_key import (
    ConnectionKey,
    ConversationKey,
    ParticipantPairKey,
)
from rental_chat.domain.value_objects.enums import ProfileType

logger = logging.getLogger(__name__)


async def resolve(
    profile_id: UUID,
    profile_type: str,
    uow: UnitOfWork,
    *,
    with_unread: bool = True,
) -> list[ChatPartner]:
    try:
        kind = ProfileType(profile_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown profile type: {profile_type}") from exc

    try:
        if kind == ProfileType.TENANT:
            rows = (await uow.connections.landlords_for_tenant(profile_id))[:1]
        else:
            rows = await uow.connections.tenants_for_landlord(profile_id)

        partners: list[ChatPartner] = []
        for connection, profile in rows:
            unread = (
                await uow.messages.count_unread(profile.id, profile_id)
                if with_unread
                else 0
            )
            partners.append(
                ChatPartner(
                    id=profile.id,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    profile_type=profile.profile_type,
                    avatar_url=profile.avatar_url,
                    connection_id=connection.id,
                    unread_count=unread,
                )
            )
    except Exception as exc:
        logger.exception("Partner resolution failed for %s %s", kind, profile_id)
        raise FetchFailedError("Could not load chat partners") from exc

    logger.debug("Resolved %d partner(s) for %s %s", len(partners), kind, profile_id)
    return partners


def select_partner(
    partners: Sequence[ChatPartner],
    preferred_id: UUID | None = None,
) -> ChatPartner | None:
    """Pick the deep-linked partner when valid, else the first one."""
    if not partners:
        return None
    if preferred_id is not None:
        for partner in partners:
            if partner.id == preferred_id:
                return partner
        logger.info("Preferred partner %s is not a chat partner; using default", preferred_id)
    return partners[0]


def conversation_key(
    profile_id: UUID,
    partner: ChatPartner,
    mode: str | None = None,
) -> ConversationKey:
    return key_between(profile_id, partner.id, partner.connection_id, mode)


def key_between(
    profile_id: UUID,
    partner_id: UUID,
    connection_id: UUID | None,
    mode: str | None = None,
) -> ConversationKey:
    mode = mode or settings.CONVERSATION_KEY_MODE
    if mode == "connection" and connection_id is not None:
        return ConnectionKey(connection_id)
    return ParticipantPairKey.of(profile_id, partner_id)
