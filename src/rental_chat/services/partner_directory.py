"""Chat partners of one profile with live unread badges."""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable
from uuid import UUID

from rental_chat.application.dto.principal import Principal
from rental_chat.application.ports.live import LiveChannel, SubscriptionHandle
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.domain.entities.message import Message
from rental_chat.domain.entities.profile import ChatPartner
from rental_chat.domain.value_objects.conversation_key import inbox_topic_suffix
from rental_chat.services import chat_partner_resolver

logger = logging.getLogger(__name__)

PartnerObserver = Callable[[ChatPartner], None]

# Inbox ids remembered for redelivery dedup; oldest are forgotten first.
SEEN_LIMIT = 1000


class PartnerDirectory:
    """Resolved partners plus an inbox listener.

    A message arriving for a partner other than the active one bumps that
    partner's unread count once per message id. Activating a partner zeroes
    its count.
    """

    def __init__(
        self,
        principal: Principal,
        uow_factory: UnitOfWorkFactory,
        live: LiveChannel,
        *,
        seen_limit: int = SEEN_LIMIT,
    ) -> None:
        self._principal = principal
        self._uow_factory = uow_factory
        self._live = live
        self._partners: dict[UUID, ChatPartner] = {}
        self._active_id: UUID | None = None
        self._seen: dict[UUID, None] = {}
        self._seen_limit = seen_limit
        self._handle: SubscriptionHandle | None = None
        self._observers: list[PartnerObserver] = []

    @property
    def partners(self) -> list[ChatPartner]:
        return list(self._partners.values())

    @property
    def active_id(self) -> UUID | None:
        return self._active_id

    def get(self, partner_id: UUID) -> ChatPartner | None:
        return self._partners.get(partner_id)

    def subscribe(self, observer: PartnerObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    async def load(self, preferred_id: UUID | None = None) -> ChatPartner | None:
        """Resolve partners and return the one to open by default."""
        async with self._uow_factory() as uow:
            partners = await chat_partner_resolver.resolve(
                self._principal.profile_id, self._principal.profile_type, uow,
            )
        self._partners = {p.id: p for p in partners}
        self._seen.clear()
        return chat_partner_resolver.select_partner(partners, preferred_id)

    async def watch(self) -> bool:
        """Listen on the inbox topic. Returns False when the channel is unavailable."""
        if self._handle is not None:
            return True
        topic = self._live.topic_for(inbox_topic_suffix(self._principal.profile_id))
        try:
            self._handle = await self._live.subscribe(topic, self._on_inbox)
        except Exception:
            logger.warning("Inbox subscription to %s failed", topic, exc_info=True)
            return False
        return True

    def set_active(self, partner_id: UUID | None) -> None:
        self._active_id = partner_id
        if partner_id is not None:
            self._set_unread(partner_id, 0)

    def close(self) -> None:
        if self._handle is not None:
            self._live.release(self._handle)
            self._handle = None

    async def _on_inbox(self, message: Message) -> None:
        if message.receiver_id != self._principal.profile_id or message.read:
            return
        if message.id in self._seen:
            return
        self._remember(message.id)
        if message.sender_id == self._active_id:
            return
        partner = self._partners.get(message.sender_id)
        if partner is None:
            logger.debug("Inbox message %s from unknown sender %s", message.id, message.sender_id)
            return
        self._set_unread(partner.id, partner.unread_count + 1)

    def _remember(self, message_id: UUID) -> None:
        self._seen[message_id] = None
        while len(self._seen) > self._seen_limit:
            del self._seen[next(iter(self._seen))]

    def _set_unread(self, partner_id: UUID, count: int) -> None:
        partner = self._partners.get(partner_id)
        if partner is None or partner.unread_count == count:
            return
        updated = dataclasses.replace(partner, unread_count=count)
        self._partners[partner_id] = updated
        for observer in list(self._observers):
            try:
                observer(updated)
            except Exception:
                logger.exception("Partner observer failed")
