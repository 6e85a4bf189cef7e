from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1, max_length=4000)


class MessageResponse(BaseModel):
    id: UUID
    connection_id: UUID | None
    sender_id: UUID
    receiver_id: UUID
    content: str
    created_at: datetime
    read: bool

    model_config = {"from_attributes": True}
