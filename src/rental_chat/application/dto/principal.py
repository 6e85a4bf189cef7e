from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from rental_chat.domain.value_objects.enums import ProfileType


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    profile_id: UUID
    profile_type: ProfileType

    @property
    def principal_key(self) -> str:
        return f"{self.profile_type}:{self.profile_id}"
