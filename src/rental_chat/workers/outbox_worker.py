"""Outbox worker: polls pending outbox records, publishes via Redis Pub/Sub.

A message insert fans out to every topic a listener may hold for it: the
participant pair, the connection (when stamped) and the receiver's inbox.
Publishing is at-least-once; subscribers merge by message id.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from rental_chat.application.dto.events import MESSAGE_INSERTED
from rental_chat.application.ports.bus import EventPublisher
from rental_chat.application.repositories.outbox import OutboxRecord
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.config import settings
from rental_chat.domain.value_objects.conversation_key import (
    inbox_topic_suffix,
    keys_for_message,
)
from rental_chat.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from rental_chat.infrastructure.bus.serializer import message_from_payload
from rental_chat.infrastructure.db.session import AsyncSessionLocal
from rental_chat.infrastructure.db.uow import uow_factory
from rental_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def _calc_backoff(attempts: int) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return datetime.now(timezone.utc) + timedelta(seconds=delay)


def topics_for(record: OutboxRecord, prefix: str | None = None) -> list[str]:
    prefix = prefix or settings.LIVE_TOPIC_PREFIX
    if record.event_type != MESSAGE_INSERTED:
        return []
    message = message_from_payload(record.payload)
    suffixes = [key.topic_suffix for key in keys_for_message(message)]
    suffixes.append(inbox_topic_suffix(message.receiver_id))
    return [f"{prefix}.{suffix}" for suffix in suffixes]


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)
    factory = uow_factory(AsyncSessionLocal)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                await process_batch(publisher, factory)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


async def process_batch(publisher: EventPublisher, factory: UnitOfWorkFactory) -> int:
    """Publish one batch. Returns the number of records sent."""
    async with factory() as uow:
        batch = await uow.outbox.fetch_pending(settings.OUTBOX_BATCH_SIZE)
        if not batch:
            return 0

        sent_ids: list[int] = []
        dead_ids: list[int] = []
        for record in batch:
            if record.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
                logger.error("Outbox record %d exceeded max attempts, giving up", record.id)
                dead_ids.append(record.id)
                continue
            try:
                topics = topics_for(record)
                if not topics:
                    logger.warning("Outbox record %d has unroutable event %s", record.id, record.event_type)
                for topic in topics:
                    await publisher.publish(topic, record.event_type, record.payload)
                sent_ids.append(record.id)
            except Exception:
                logger.exception("Failed to publish outbox record %d", record.id)
                await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts))

        await uow.outbox.mark_sent(sent_ids)
        await uow.outbox.mark_dead(dead_ids)

        await uow.commit()
        if sent_ids:
            logger.info("Published %d outbox records", len(sent_ids))
        return len(sent_ids)


def main() -> None:
    configure_logging()
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
