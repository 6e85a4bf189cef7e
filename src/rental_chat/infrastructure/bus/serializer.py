from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from rental_chat.domain.entities.message import Message


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]


def message_from_payload(data: dict[str, Any]) -> Message:
    """Rebuild a message from a ``rental.message_inserted`` payload."""
    connection_id = data.get("connection_id")
    return Message(
        id=UUID(str(data["id"])),
        connection_id=UUID(str(connection_id)) if connection_id else None,
        sender_id=UUID(str(data["sender_id"])),
        receiver_id=UUID(str(data["receiver_id"])),
        content=data["content"],
        created_at=datetime.fromisoformat(data["created_at"]),
        read=bool(data.get("read", False)),
    )
