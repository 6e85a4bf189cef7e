from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """Read-model handed to the outbox worker."""

    id: int
    event_type: str
    payload: dict[str, Any]
    attempts: int


class OutboxWriter(Protocol):
    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        """Stage an event in the caller's transaction."""
        ...

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim due records (pending, or failed past their retry time)."""
        ...

    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_dead(self, ids: list[int]) -> None:
        """Retire records that used up their attempts."""
        ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None: ...
