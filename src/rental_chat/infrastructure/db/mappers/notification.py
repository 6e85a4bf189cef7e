from __future__ import annotations

from rental_chat.domain.entities.notification import Notification
from rental_chat.infrastructure.db.models.notification import NotificationModel


def model_to_entity(model: NotificationModel) -> Notification:
    return Notification(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        message=model.message,
        type=model.type,
        is_read=model.is_read,
        created_at=model.created_at,
        related_entity_type=model.related_entity_type,
        related_entity_id=model.related_entity_id,
    )
