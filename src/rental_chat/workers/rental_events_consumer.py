"""Consumer for rental platform events via Redis Streams.

Payment, application and maintenance events become user notifications.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import redis.asyncio as aioredis

from rental_chat.application.dto.events import (
    APPLICATION_STATUS_CHANGED,
    MAINTENANCE_UPDATED,
    PAYMENT_DUE,
    PAYMENT_RECEIVED,
)
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.config import settings
from rental_chat.domain.value_objects.enums import NotificationType
from rental_chat.infrastructure.bus.redis_streams import RedisStreamConsumer
from rental_chat.infrastructure.db.session import AsyncSessionLocal
from rental_chat.infrastructure.db.uow import uow_factory
from rental_chat.logging_config import configure_logging
from rental_chat.services import notification_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationDraft:
    user_id: UUID
    title: str
    message: str
    type: NotificationType
    related_entity_type: str | None = None
    related_entity_id: str | None = None


_APPLICATION_TYPES: dict[str, NotificationType] = {
    "approved": NotificationType.SUCCESS,
    "rejected": NotificationType.ERROR,
}


def _payment_due(data: dict[str, Any]) -> list[NotificationDraft]:
    return [
        NotificationDraft(
            user_id=UUID(data["tenant_id"]),
            title="Rent Due",
            message=f"Your rent payment of {data['amount']} is due on {data['due_date']}",
            type=NotificationType.WARNING,
            related_entity_type="payment",
            related_entity_id=data.get("payment_id"),
        )
    ]


def _payment_received(data: dict[str, Any]) -> list[NotificationDraft]:
    drafts = [
        NotificationDraft(
            user_id=UUID(data["landlord_id"]),
            title="Payment Received",
            message=f"A payment of {data['amount']} was received",
            type=NotificationType.SUCCESS,
            related_entity_type="payment",
            related_entity_id=data.get("payment_id"),
        )
    ]
    if data.get("tenant_id"):
        drafts.append(
            NotificationDraft(
                user_id=UUID(data["tenant_id"]),
                title="Payment Confirmed",
                message=f"Your payment of {data['amount']} was confirmed",
                type=NotificationType.SUCCESS,
                related_entity_type="payment",
                related_entity_id=data.get("payment_id"),
            )
        )
    return drafts


def _application_status_changed(data: dict[str, Any]) -> list[NotificationDraft]:
    status = data["status"]
    return [
        NotificationDraft(
            user_id=UUID(data["tenant_id"]),
            title="Application Update",
            message=f"Your rental application is now {status}",
            type=_APPLICATION_TYPES.get(status, NotificationType.INFO),
            related_entity_type="application",
            related_entity_id=data.get("application_id"),
        )
    ]


def _maintenance_updated(data: dict[str, Any]) -> list[NotificationDraft]:
    return [
        NotificationDraft(
            user_id=UUID(data["tenant_id"]),
            title="Maintenance Update",
            message=f"Your maintenance request is now {data['status']}",
            type=NotificationType.INFO,
            related_entity_type="maintenance",
            related_entity_id=data.get("request_id"),
        )
    ]


_BUILDERS = {
    PAYMENT_DUE: _payment_due,
    PAYMENT_RECEIVED: _payment_received,
    APPLICATION_STATUS_CHANGED: _application_status_changed,
    MAINTENANCE_UPDATED: _maintenance_updated,
}


def build_notifications(event_type: str, data: dict[str, Any]) -> list[NotificationDraft]:
    """Drafts for an event; unknown events yield none. Malformed data raises."""
    builder = _BUILDERS.get(event_type)
    if builder is None:
        return []
    return builder(data)


async def handle_event(event_type: str, data: dict[str, Any], factory: UnitOfWorkFactory) -> int:
    """Persist the notifications for one event. Returns how many were created."""
    try:
        drafts = build_notifications(event_type, data)
    except (KeyError, ValueError):
        # Acked and dropped: redelivery would not fix the payload.
        logger.warning("Malformed %s event: %r", event_type, data, exc_info=True)
        return 0
    if not drafts:
        logger.debug("Ignoring event: %s", event_type)
        return 0

    for draft in drafts:
        async with factory() as uow:
            await notification_service.create_notification(
                draft.user_id,
                draft.title,
                draft.message,
                draft.type,
                uow,
                related_entity_type=draft.related_entity_type,
                related_entity_id=draft.related_entity_id,
            )
    logger.info("Event %s produced %d notification(s)", event_type, len(drafts))
    return len(drafts)


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    factory = uow_factory(AsyncSessionLocal)
    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"

    async def _callback(event_type: str, data: dict[str, Any]) -> None:
        await handle_event(event_type, data, factory)

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.RENTAL_EVENTS_STREAM,
        group=settings.RENTAL_EVENTS_GROUP,
        consumer=consumer_name,
        callback=_callback,
    )
    await consumer.start()
    logger.info("Rental events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await redis.aclose()


def main() -> None:
    configure_logging()
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
