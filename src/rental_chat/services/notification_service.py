from __future__ import annotations

import uuid

from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from rental_chat.application.uow import UnitOfWork
from rental_chat.domain.entities.notification import Notification
from rental_chat.domain.value_objects.enums import NotificationType


async def list_notifications(
    principal: Principal,
    uow: UnitOfWork,
    *,
    limit: int = 50,
) -> list[Notification]:
    return await uow.notifications.list_for_user(principal.profile_id, limit=limit)


async def count_unread(principal: Principal, uow: UnitOfWork) -> int:
    return await uow.notifications.count_unread(principal.profile_id)


async def mark_read(
    principal: Principal,
    notification_id: uuid.UUID,
    uow: UnitOfWork,
) -> None:
    notification = await uow.notifications.get_by_id(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != principal.profile_id:
        raise ForbiddenError("Notification belongs to another user")
    if notification.is_read:
        return
    await uow.notifications_w.mark_read(notification_id)
    await uow.commit()


async def mark_all_read(principal: Principal, uow: UnitOfWork) -> int:
    updated = await uow.notifications_w.mark_all_read(principal.profile_id)
    await uow.commit()
    return updated


async def create_notification(
    user_id: uuid.UUID,
    title: str,
    message: str,
    type: str,
    uow: UnitOfWork,
    *,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> Notification:
    if type not in NotificationType.__members__.values():
        raise ValidationError(f"Unknown notification type: {type}")
    if not title.strip():
        raise ValidationError("Notification title must not be empty")

    notification = await uow.notifications_w.create(
        user_id,
        title.strip(),
        message,
        type,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
    )
    await uow.commit()
    return notification
