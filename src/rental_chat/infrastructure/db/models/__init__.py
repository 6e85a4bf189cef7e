"""Import all models so Alembic can discover them via Base.metadata."""
from rental_chat.infrastructure.db.models.connection import ConnectionModel
from rental_chat.infrastructure.db.models.message import MessageModel
from rental_chat.infrastructure.db.models.notification import NotificationModel
from rental_chat.infrastructure.db.models.outbox import OutboxMessageModel
from rental_chat.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "ConnectionModel",
    "MessageModel",
    "NotificationModel",
    "OutboxMessageModel",
    "ProfileModel",
]
