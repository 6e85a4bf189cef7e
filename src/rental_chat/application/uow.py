from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from rental_chat.application.repositories.connection import ConnectionReader
from rental_chat.application.repositories.message import MessageReader, MessageWriter
from rental_chat.application.repositories.notification import (
    NotificationReader,
    NotificationWriter,
)
from rental_chat.application.repositories.outbox import OutboxWriter


class UnitOfWork(Protocol):
    connections: ConnectionReader
    messages: MessageReader
    messages_w: MessageWriter
    notifications: NotificationReader
    notifications_w: NotificationWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


# Long-lived components (sessions, feeds) open a fresh unit of work per call.
UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
