"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from rental_chat.application.dto.principal import Principal
from rental_chat.application.ports.live import OnInsert
from rental_chat.application.repositories.outbox import OutboxRecord
from rental_chat.domain.entities.connection import TenantLandlordConnection
from rental_chat.domain.entities.message import Message
from rental_chat.domain.entities.notification import Notification
from rental_chat.domain.entities.profile import ProfileRef
from rental_chat.domain.value_objects.conversation_key import (
    ConversationKey,
    inbox_topic_suffix,
    keys_for_message,
)
from rental_chat.domain.value_objects.enums import (
    ConnectionStatus,
    NotificationType,
    ProfileType,
)

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
_last_us = 0


def next_time() -> datetime:
    """Strictly increasing timestamps, so creation order is timeline order.

    Driven by the process-wide monotonic clock: pytest loads this module both
    as ``conftest`` and as ``tests.conftest``, and both copies must agree.
    """
    global _last_us
    now_us = time.monotonic_ns() // 1000
    while now_us <= _last_us:
        now_us = time.monotonic_ns() // 1000
    _last_us = now_us
    return BASE_TIME + timedelta(microseconds=now_us)


def make_profile(
    profile_type: str = ProfileType.TENANT,
    *,
    profile_id: UUID | None = None,
    first_name: str = "Alex",
    last_name: str = "Doe",
) -> ProfileRef:
    return ProfileRef(
        id=profile_id or uuid.uuid4(),
        first_name=first_name,
        last_name=last_name,
        profile_type=profile_type,
    )


def make_message(
    sender_id: UUID,
    receiver_id: UUID,
    *,
    content: str = "hello",
    connection_id: UUID | None = None,
    created_at: datetime | None = None,
    read: bool = False,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        connection_id=connection_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        created_at=created_at or next_time(),
        read=read,
    )


def make_notification(
    user_id: UUID,
    *,
    title: str = "Rent Due",
    is_read: bool = False,
    created_at: datetime | None = None,
    type: str = NotificationType.INFO,
) -> Notification:
    return Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        title=title,
        message="Your rent payment is due in 3 days",
        type=type,
        is_read=is_read,
        created_at=created_at or next_time(),
    )


def principal_for(profile: ProfileRef) -> Principal:
    return Principal(profile_id=profile.id, profile_type=ProfileType(profile.profile_type))


# --------------------------------------------------------------- repositories


@dataclass
class FakeConnectionReader:
    _connections: list[TenantLandlordConnection] = field(default_factory=list)
    _profiles: dict[UUID, ProfileRef] = field(default_factory=dict)
    fail: Exception | None = None

    def connect(
        self,
        tenant: ProfileRef,
        landlord: ProfileRef,
        *,
        status: str = ConnectionStatus.ACTIVE,
    ) -> TenantLandlordConnection:
        self._profiles[tenant.id] = tenant
        self._profiles[landlord.id] = landlord
        connection = TenantLandlordConnection(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            landlord_id=landlord.id,
            status=status,
            created_at=next_time(),
        )
        self._connections.append(connection)
        return connection

    def _active(self) -> list[TenantLandlordConnection]:
        if self.fail is not None:
            raise self.fail
        return sorted(
            (c for c in self._connections if c.status == ConnectionStatus.ACTIVE),
            key=lambda c: c.created_at,
        )

    async def landlords_for_tenant(self, tenant_id: UUID) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        return [(c, self._profiles[c.landlord_id]) for c in self._active() if c.tenant_id == tenant_id]

    async def tenants_for_landlord(self, landlord_id: UUID) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        return [(c, self._profiles[c.tenant_id]) for c in self._active() if c.landlord_id == landlord_id]

    async def get_by_id(self, connection_id: UUID) -> TenantLandlordConnection | None:
        return next((c for c in self._connections if c.id == connection_id), None)

    async def get_between(self, profile_a: UUID, profile_b: UUID) -> TenantLandlordConnection | None:
        for c in self._active():
            if {c.tenant_id, c.landlord_id} == {profile_a, profile_b}:
                return c
        return None


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)
    fail: Exception | None = None
    # When set, list_messages waits on it before answering.
    gate: asyncio.Event | None = None
    list_calls: int = 0

    def add(self, *messages: Message) -> None:
        self._messages.extend(messages)

    def _replace(self, message: Message) -> None:
        self._messages = [message if m.id == message.id else m for m in self._messages]

    async def list_messages(self, key: ConversationKey, *, limit: int = 500) -> list[Message]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        matching = sorted((m for m in self._messages if key.matches(m)), key=lambda m: m.sort_key)
        return matching[:limit]

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def count_unread(self, sender_id: UUID, receiver_id: UUID) -> int:
        return sum(
            1
            for m in self._messages
            if m.sender_id == sender_id and m.receiver_id == receiver_id and not m.read
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    fail_insert: Exception | None = None
    fail_mark_read: Exception | None = None
    mark_read_calls: int = 0

    async def insert(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        content: str,
        *,
        connection_id: UUID | None = None,
    ) -> Message:
        if self.fail_insert is not None:
            raise self.fail_insert
        message = make_message(sender_id, receiver_id, content=content, connection_id=connection_id)
        self._reader.add(message)
        return message

    async def mark_conversation_read(self, key: ConversationKey, reader_id: UUID) -> list[UUID]:
        self.mark_read_calls += 1
        if self.fail_mark_read is not None:
            raise self.fail_mark_read
        flipped: list[UUID] = []
        for m in list(self._reader._messages):
            if key.matches(m) and m.receiver_id == reader_id and not m.read:
                self._reader._replace(replace(m, read=True))
                flipped.append(m.id)
        return flipped

    async def mark_read(self, message_id: UUID, reader_id: UUID) -> bool:
        self.mark_read_calls += 1
        if self.fail_mark_read is not None:
            raise self.fail_mark_read
        message = await self._reader.get_by_id(message_id)
        if message is None or message.receiver_id != reader_id or message.read:
            return False
        self._reader._replace(replace(message, read=True))
        return True


@dataclass
class FakeNotificationReader:
    _items: list[Notification] = field(default_factory=list)
    fail: Exception | None = None
    count_fail: Exception | None = None
    gate: asyncio.Event | None = None

    def add(self, *items: Notification) -> None:
        self._items.extend(items)

    async def list_for_user(self, user_id: UUID, *, limit: int = 50) -> list[Notification]:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        mine = [n for n in self._items if n.user_id == user_id]
        return sorted(mine, key=lambda n: n.created_at, reverse=True)[:limit]

    async def count_unread(self, user_id: UUID) -> int:
        if self.count_fail is not None:
            raise self.count_fail
        return sum(1 for n in self._items if n.user_id == user_id and not n.is_read)

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        return next((n for n in self._items if n.id == notification_id), None)


@dataclass
class FakeNotificationWriter:
    _reader: FakeNotificationReader
    fail: Exception | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)

    async def create(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> Notification:
        notification = Notification(
            id=uuid.uuid4(),
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=False,
            created_at=next_time(),
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        self._reader.add(notification)
        return notification

    async def mark_read(self, notification_id: UUID) -> None:
        self.calls.append(("mark_read", notification_id))
        if self.fail is not None:
            raise self.fail
        self._reader._items = [
            replace(n, is_read=True) if n.id == notification_id else n for n in self._reader._items
        ]

    async def mark_all_read(self, user_id: UUID) -> int:
        self.calls.append(("mark_all_read", user_id))
        if self.fail is not None:
            raise self.fail
        updated = 0
        items = []
        for n in self._reader._items:
            if n.user_id == user_id and not n.is_read:
                n = replace(n, is_read=True)
                updated += 1
            items.append(n)
        self._reader._items = items
        return updated


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    pending: list[OutboxRecord] = field(default_factory=list)
    sent: list[int] = field(default_factory=list)
    failed: list[tuple[int, datetime]] = field(default_factory=list)
    dead: list[int] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "payload": payload})

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        batch, self.pending = self.pending[:batch_size], self.pending[batch_size:]
        return batch

    async def mark_sent(self, ids: list[int]) -> None:
        self.sent.extend(ids)

    async def mark_dead(self, ids: list[int]) -> None:
        self.dead.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        self.failed.append((record_id, next_retry_at))


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    connections: FakeConnectionReader = field(default_factory=FakeConnectionReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    notifications: FakeNotificationReader = field(default_factory=FakeNotificationReader)
    notifications_w: FakeNotificationWriter | None = None
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.notifications_w is None:
            self.notifications_w = FakeNotificationWriter(self.notifications)

    @property
    def _committed(self) -> bool:
        return self.commits > 0

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


def factory_for(uow: FakeUoW):
    """UnitOfWorkFactory that hands out the same in-memory UoW every time."""

    @asynccontextmanager
    async def _open() -> AsyncIterator[FakeUoW]:
        yield uow

    return _open


# ----------------------------------------------------------------------- live


@dataclass(eq=False)
class FakeHandle:
    topic: str
    on_insert: OnInsert
    active: bool = True


@dataclass
class FakeLiveChannel:
    handles: list[FakeHandle] = field(default_factory=list)
    subscribes: int = 0
    releases: int = 0
    fail: Exception | None = None
    # When set, subscribe waits on it before returning.
    gate: asyncio.Event | None = None

    def topic_for(self, suffix: str) -> str:
        return f"test.{suffix}"

    async def subscribe(self, topic: str, on_insert: OnInsert) -> FakeHandle:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        self.subscribes += 1
        handle = FakeHandle(topic, on_insert)
        self.handles.append(handle)
        return handle

    def release(self, handle: FakeHandle) -> None:
        if handle.active:
            handle.active = False
            self.releases += 1

    @property
    def active_handles(self) -> list[FakeHandle]:
        return [h for h in self.handles if h.active]

    async def deliver(self, topic: str, message: Message) -> int:
        delivered = 0
        for handle in list(self.handles):
            if handle.active and handle.topic == topic:
                await handle.on_insert(message)
                delivered += 1
        return delivered

    async def publish(self, message: Message) -> int:
        """Deliver on every topic the outbox worker would publish to."""
        suffixes = [k.topic_suffix for k in keys_for_message(message)]
        suffixes.append(inbox_topic_suffix(message.receiver_id))
        delivered = 0
        for suffix in suffixes:
            delivered += await self.deliver(self.topic_for(suffix), message)
        return delivered


# ------------------------------------------------------------------- fixtures


@pytest.fixture
def tenant() -> ProfileRef:
    return make_profile(ProfileType.TENANT, first_name="Tom", last_name="Renter")


@pytest.fixture
def landlord() -> ProfileRef:
    return make_profile(ProfileType.LANDLORD, first_name="Lena", last_name="Owner")


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def connection(uow: FakeUoW, tenant: ProfileRef, landlord: ProfileRef) -> TenantLandlordConnection:
    return uow.connections.connect(tenant, landlord)


@pytest.fixture
def tenant_principal(tenant: ProfileRef) -> Principal:
    return principal_for(tenant)


@pytest.fixture
def landlord_principal(landlord: ProfileRef) -> Principal:
    return principal_for(landlord)


@pytest.fixture
def live() -> FakeLiveChannel:
    return FakeLiveChannel()
