from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rental_chat.infrastructure.db.repositories.connection import ConnectionReaderRepo
from rental_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from rental_chat.infrastructure.db.repositories.notification import (
    NotificationReaderRepo,
    NotificationWriterRepo,
)
from rental_chat.infrastructure.db.repositories.outbox import OutboxWriterRepo


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.connections = ConnectionReaderRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.notifications = NotificationReaderRepo(session)
        self.notifications_w = NotificationWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()


def uow_factory(sessionmaker: async_sessionmaker[AsyncSession]):
    """Factory opening a fresh session per unit of work, for long-lived callers."""

    @asynccontextmanager
    async def _open() -> AsyncIterator[SqlAlchemyUoW]:
        async with sessionmaker() as session:
            async with SqlAlchemyUoW(session) as uow:
                yield uow

    return _open
