"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    # chat: open | send | close | ping
    # notifications: refresh | mark_read | mark_all_read | ping
    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    # chat: partners | messages.snapshot | message.inserted | messages.read |
    #       message.sent | partner.unread | error | pong
    # notifications: notifications.snapshot | error | pong
    type: str
    data: dict[str, Any] = {}


def encode(type_: str, data: dict[str, Any] | None = None) -> str:
    return WsOutbound(type=type_, data=data or {}).model_dump_json()


def error(code: str, detail: str | None = None) -> str:
    data: dict[str, Any] = {"code": code}
    if detail:
        data["detail"] = detail
    return encode("error", data)
