from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ProfileRef:
    id: UUID
    first_name: str
    last_name: str
    profile_type: str
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class ChatPartner:
    """A counterpart the current profile may message."""

    id: UUID
    first_name: str
    last_name: str
    profile_type: str
    avatar_url: str | None = None
    connection_id: UUID | None = None
    unread_count: int = 0

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
