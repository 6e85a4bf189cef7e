"""Redis Pub/Sub: publish side and per-topic live subscriptions."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis

from rental_chat.application.dto.events import MESSAGE_INSERTED
from rental_chat.application.exceptions import SubscriptionFailedError
from rental_chat.application.ports.live import OnInsert, SubscriptionHandle
from rental_chat.config import settings
from rental_chat.infrastructure.bus.serializer import (
    deserialize_event,
    message_from_payload,
    serialize_event,
)

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, topic: str, event_type: str, payload: dict[str, Any]) -> None:
        await self._redis.publish(topic, serialize_event(event_type, payload))


class _Subscription:
    def __init__(self, topic: str) -> None:
        self.topic = topic
        self.task: asyncio.Task[None] | None = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deactivate(self) -> None:
        self._active = False


class RedisLiveChannel:
    """Implements application.ports.live.LiveChannel.

    Each subscription owns a Pub/Sub connection and a listener task.
    ``release`` flips the handle inactive before cancelling the task, so no
    callback runs after it returns.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str | None = None) -> None:
        self._redis = redis
        self._prefix = prefix or settings.LIVE_TOPIC_PREFIX
        self._subscriptions: set[_Subscription] = set()

    def topic_for(self, suffix: str) -> str:
        return f"{self._prefix}.{suffix}"

    async def subscribe(self, topic: str, on_insert: OnInsert) -> SubscriptionHandle:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(topic)
        except Exception as exc:
            await pubsub.aclose()
            raise SubscriptionFailedError(f"Could not subscribe to {topic}") from exc

        sub = _Subscription(topic)
        sub.task = asyncio.create_task(
            self._listen(sub, pubsub, on_insert), name=f"live-{topic}",
        )
        self._subscriptions.add(sub)
        logger.debug("Live subscription opened on %s", topic)
        return sub

    def release(self, handle: SubscriptionHandle) -> None:
        if not isinstance(handle, _Subscription) or not handle.active:
            return
        handle.deactivate()
        self._subscriptions.discard(handle)
        if handle.task is not None:
            handle.task.cancel()
        logger.debug("Live subscription released on %s", handle.topic)

    async def aclose(self) -> None:
        subs = list(self._subscriptions)
        for sub in subs:
            self.release(sub)
        tasks = [s.task for s in subs if s.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _listen(
        self,
        sub: _Subscription,
        pubsub: aioredis.client.PubSub,
        on_insert: OnInsert,
    ) -> None:
        try:
            async for raw in pubsub.listen():
                if raw["type"] != "message":
                    continue
                if not sub.active:
                    break
                try:
                    event_type, data = deserialize_event(raw["data"])
                    if event_type != MESSAGE_INSERTED:
                        continue
                    await on_insert(message_from_payload(data))
                except Exception:
                    logger.exception("Error processing live message on %s", sub.topic)
        finally:
            try:
                await pubsub.unsubscribe(sub.topic)
                await pubsub.aclose()
            except Exception:
                logger.debug("Pub/Sub teardown for %s failed", sub.topic, exc_info=True)
