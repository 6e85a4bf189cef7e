"""One open conversation: history, a single live subscription, send and read."""
from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from rental_chat.application.background import BackgroundTasks
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import (
    AppError,
    ConflictError,
    FetchFailedError,
    ForbiddenError,
    SendFailedError,
    SessionClosedError,
    ValidationError,
)
from rental_chat.application.ports.live import LiveChannel, OnInsert, SubscriptionHandle
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.config import settings
from rental_chat.domain.entities.message import Message
from rental_chat.domain.entities.profile import ChatPartner
from rental_chat.domain.message_store import MessageStore
from rental_chat.domain.value_objects.conversation_key import ConversationKey
from rental_chat.domain.value_objects.enums import SessionState
from rental_chat.services import message_service, read_state_service
from rental_chat.services.chat_partner_resolver import conversation_key

logger = logging.getLogger(__name__)


class ConversationSession:
    """Consistent, ordered, deduplicated view of one conversation.

    History and live inserts race; both go through ``MessageStore.insert``.
    Every ``open``/``close`` bumps a generation counter, and any result or
    live event tagged with an older generation is dropped. At most one live
    subscription is held at a time.
    """

    def __init__(
        self,
        principal: Principal,
        partners: Sequence[ChatPartner],
        uow_factory: UnitOfWorkFactory,
        live: LiveChannel,
        *,
        tasks: BackgroundTasks | None = None,
        key_mode: str | None = None,
        history_limit: int | None = None,
    ) -> None:
        self._principal = principal
        self._partners = {p.id: p for p in partners}
        self._uow_factory = uow_factory
        self._live = live
        self._tasks = tasks if tasks is not None else BackgroundTasks()
        self._key_mode = key_mode
        self._history_limit = history_limit or settings.MESSAGE_HISTORY_LIMIT

        self._store = MessageStore()
        self._state = SessionState.IDLE
        self._partner: ChatPartner | None = None
        self._key: ConversationKey | None = None
        self._handle: SubscriptionHandle | None = None
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def partner(self) -> ChatPartner | None:
        return self._partner

    @property
    def key(self) -> ConversationKey | None:
        return self._key

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def live(self) -> bool:
        return self._handle is not None and self._handle.active

    def messages(self) -> tuple[Message, ...]:
        return self._store.all()

    def update_partners(self, partners: Sequence[ChatPartner]) -> None:
        self._partners = {p.id: p for p in partners}

    async def open(self, partner_id: UUID) -> tuple[Message, ...]:
        partner = self._partners.get(partner_id)
        if partner is None:
            raise ForbiddenError("Not a chat partner")

        self.close()
        self._generation += 1
        generation = self._generation
        self._state = SessionState.OPENING
        self._partner = partner
        self._key = conversation_key(self._principal.profile_id, partner, self._key_mode)
        self._store.reset()

        await self._subscribe(generation)

        try:
            async with self._uow_factory() as uow:
                history = await message_service.list_messages(
                    self._principal, self._key, uow, limit=self._history_limit,
                )
        except AppError:
            self._abort(generation)
            raise
        except Exception as exc:
            if not self._abort(generation):
                raise SessionClosedError("Conversation closed while loading") from exc
            logger.warning("History fetch failed for %s", self._key, exc_info=True)
            raise FetchFailedError("Could not load conversation history") from exc

        self._ensure_current(generation)
        for message in history:
            self._store.insert(message)

        await self._mark_incoming_read(generation)
        self._ensure_current(generation)

        self._state = SessionState.OPEN
        logger.info(
            "Opened conversation %s (%d messages, live=%s)",
            self._key, len(self._store), self.live,
        )
        return self._store.all()

    async def send(self, content: str) -> Message:
        """Submit a message. It is appended when the live echo (or a refetch) arrives."""
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content must not be empty")
        if self._state != SessionState.OPEN or self._partner is None:
            raise ConflictError("Conversation is not open")

        try:
            async with self._uow_factory() as uow:
                return await message_service.send_message(
                    self._principal, self._partner.id, text, uow,
                )
        except (ValidationError, ForbiddenError):
            raise
        except Exception as exc:
            logger.warning("Send to %s failed", self._partner.id, exc_info=True)
            raise SendFailedError("Message could not be sent") from exc

    async def on_live_message(self, message: Message) -> bool:
        return self._accept(message, self._generation)

    def close(self) -> None:
        """Release the live subscription now and invalidate in-flight work."""
        self._generation += 1
        self._release()
        if self._state in (SessionState.OPENING, SessionState.OPEN):
            self._state = SessionState.CLOSED
            logger.debug("Closed conversation %s", self._key)

    async def aclose(self) -> None:
        self.close()
        await self._tasks.aclose()

    async def _subscribe(self, generation: int) -> None:
        assert self._key is not None
        topic = self._live.topic_for(self._key.topic_suffix)
        try:
            handle = await self._live.subscribe(topic, self._listener(generation))
        except Exception:
            # SubscriptionFailedError is contained: the session stays fetch-only.
            logger.warning(
                "Live subscription to %s failed; continuing without live updates",
                topic, exc_info=True,
            )
            return
        if generation != self._generation:
            self._live.release(handle)
            raise SessionClosedError("Conversation closed while subscribing")
        self._handle = handle

    def _listener(self, generation: int) -> OnInsert:
        async def _on_insert(message: Message) -> None:
            self._accept(message, generation)

        return _on_insert

    def _accept(self, message: Message, generation: int) -> bool:
        if generation != self._generation or self._state not in (
            SessionState.OPENING,
            SessionState.OPEN,
        ):
            logger.debug("Dropped live message %s for a stale session", message.id)
            return False
        if self._key is None or not self._key.matches(message):
            return False

        inserted = self._store.insert(message)
        if (
            inserted
            and message.receiver_id == self._principal.profile_id
            and not message.read
        ):
            self._tasks.spawn(
                self._mark_live_read(message.id, generation),
                name=f"mark-read-{message.id}",
            )
        return inserted

    async def _mark_live_read(self, message_id: UUID, generation: int) -> None:
        try:
            async with self._uow_factory() as uow:
                await read_state_service.mark_message_read(self._principal, message_id, uow)
        except Exception:
            logger.warning("Mark-read for message %s failed; not retried", message_id, exc_info=True)
            return
        if generation == self._generation:
            self._store.mark_read((message_id,))

    async def _mark_incoming_read(self, generation: int) -> None:
        assert self._key is not None
        me = self._principal.profile_id
        unread = {m.id for m in self._store.all() if m.receiver_id == me and not m.read}
        try:
            async with self._uow_factory() as uow:
                flipped = await read_state_service.mark_conversation_read(
                    self._principal, self._key, uow,
                )
        except Exception:
            logger.warning("Bulk mark-read for %s failed; not retried", self._key, exc_info=True)
            return
        if generation == self._generation:
            self._store.mark_read(unread | set(flipped))

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise SessionClosedError("Conversation was closed or re-opened")

    def _abort(self, generation: int) -> bool:
        if generation != self._generation:
            return False
        self._release()
        self._state = SessionState.CLOSED
        return True

    def _release(self) -> None:
        if self._handle is not None:
            self._live.release(self._handle)
            self._handle = None
