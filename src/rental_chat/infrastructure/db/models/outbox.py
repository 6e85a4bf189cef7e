from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from rental_chat.domain.value_objects.enums import OutboxStatus
from rental_chat.infrastructure.db.base import Base


class OutboxMessageModel(Base):
    """Events staged with the write that caused them, published by the outbox worker.

    ``event_type`` is one of ``application.dto.events`` (today only
    ``rental.message_inserted``); ``payload`` is the serialized message the
    live channel fans out to pair, connection and inbox topics.
    """

    __tablename__ = "outbox_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OutboxStatus.PENDING,
        server_default=text(f"'{OutboxStatus.PENDING}'"),
    )
    # Incremented per failed publish; OUTBOX_MAX_ATTEMPTS moves the row to dead.
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    next_retry_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("now()"), onupdate=text("now()"),
    )

    __table_args__ = (
        Index("ix_outbox_messages_due", "status", "next_retry_at", "created_at"),
    )
