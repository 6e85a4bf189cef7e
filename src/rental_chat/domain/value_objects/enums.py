from __future__ import annotations

from enum import StrEnum


class ProfileType(StrEnum):
    TENANT = "tenant"
    LANDLORD = "landlord"


class ConnectionStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class NotificationType(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class SessionState(StrEnum):
    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    # Gave up after OUTBOX_MAX_ATTEMPTS; kept for inspection.
    DEAD = "dead"
