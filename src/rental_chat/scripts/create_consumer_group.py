"""One-time script: create the Redis Streams consumer group for rental events."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from rental_chat.config import settings
from rental_chat.infrastructure.bus.redis_streams import RedisStreamConsumer
from rental_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def _noop(_event_type: str, _data: dict) -> None:
    return None


async def create_group() -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        consumer = RedisStreamConsumer(
            r,
            settings.RENTAL_EVENTS_STREAM,
            settings.RENTAL_EVENTS_GROUP,
            "setup",
            _noop,
        )
        await consumer.ensure_group()
        logger.info(
            "Consumer group '%s' ready on stream '%s'",
            settings.RENTAL_EVENTS_GROUP,
            settings.RENTAL_EVENTS_STREAM,
        )
    finally:
        await r.aclose()


def main() -> None:
    configure_logging()
    asyncio.run(create_group())


if __name__ == "__main__":
    main()
