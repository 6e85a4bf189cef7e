"""Push channel delivering newly inserted messages for a topic."""
from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from rental_chat.domain.entities.message import Message

OnInsert = Callable[[Message], Awaitable[None]]


class SubscriptionHandle(Protocol):
    topic: str

    @property
    def active(self) -> bool: ...


class LiveChannel(Protocol):
    def topic_for(self, suffix: str) -> str: ...

    async def subscribe(self, topic: str, on_insert: OnInsert) -> SubscriptionHandle:
        """Start delivering inserts on ``topic``. Raise on setup failure."""
        ...

    def release(self, handle: SubscriptionHandle) -> None:
        """Stop delivery for ``handle`` immediately. Releasing twice is a no-op."""
        ...
