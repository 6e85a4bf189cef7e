from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    connection_id: UUID | None
    sender_id: UUID
    receiver_id: UUID
    content: str
    created_at: datetime
    read: bool = False

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Timeline position: server timestamp, ties broken by id."""
        return self.created_at, str(self.id)
