from __future__ import annotations

from typing import Protocol
from uuid import UUID

from rental_chat.domain.entities.notification import Notification


class NotificationReader(Protocol):
    async def list_for_user(self, user_id: UUID, *, limit: int = 50) -> list[Notification]:
        """Newest first."""
        ...

    async def count_unread(self, user_id: UUID) -> int: ...

    async def get_by_id(self, notification_id: UUID) -> Notification | None: ...


class NotificationWriter(Protocol):
    async def create(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> Notification: ...

    async def mark_read(self, notification_id: UUID) -> None: ...

    async def mark_all_read(self, user_id: UUID) -> int: ...
