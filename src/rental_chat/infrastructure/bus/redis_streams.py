"""Redis Streams consumer for rental platform events."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]

RETRY_DELAY_SECONDS = 5


def decode_fields(fields: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Split a stream entry into its event type and data.

    Producers either put a JSON document in ``payload`` or flatten the data
    into the entry's fields.
    """
    event_type = fields.get("event_type", "unknown")
    raw = fields.get("payload")
    if raw:
        return event_type, json.loads(raw)
    return event_type, {k: v for k, v in fields.items() if k != "event_type"}


class RedisStreamConsumer:
    """XREADGROUP-based consumer for a single stream and consumer group.

    An entry is acknowledged only after its callback succeeds; failed entries
    stay pending for another consumer to claim.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._task: asyncio.Task[None] | None = None

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                self._stream, self._group, id="$", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug("Consumer group %s already exists", self._group)

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name=f"stream-{self._stream}")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stream consumer stopped")

    async def handle_entry(self, entry_id: str, fields: dict[str, Any]) -> bool:
        """Run the callback for one entry and ack it on success."""
        try:
            event_type, data = decode_fields(fields)
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error processing stream entry %s", entry_id)
            return False
        await self._redis.xack(self._stream, self._group, entry_id)
        return True

    async def _consume(self) -> None:
        while True:
            try:
                entries = await self._redis.xreadgroup(
                    groupname=self._group,
                    consumername=self._consumer,
                    streams={self._stream: ">"},
                    count=self._batch_size,
                    block=self._block_ms,
                )
                for _stream_name, batch in entries or ():
                    for entry_id, fields in batch:
                        await self.handle_entry(entry_id, fields)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Stream consumer error, retrying in %ds", RETRY_DELAY_SECONDS)
                await asyncio.sleep(RETRY_DELAY_SECONDS)
