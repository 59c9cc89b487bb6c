"""Redis Pub/Sub change feed: one channel per content kind."""
from __future__ import annotations

import logging
from typing import AsyncIterator

import redis.asyncio as aioredis

from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


class RedisChangeFeed:
    """Implements application.ports.bus.ChangeFeed."""

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    def channel(self, kind: ContentKind) -> str:
        return f"{self._prefix}.{kind.value}"

    async def publish_change(self, kind: ContentKind, op: str, ids: list[str]) -> None:
        raw = serialize_event(f"content.{op}", {"kind": kind, "ids": ids})
        await self._redis.publish(self.channel(kind), raw)

    async def listen(self, kind: ContentKind) -> AsyncIterator[None]:
        channel = self.channel(kind)
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        logger.debug("Listening for changes on %s", channel)
        try:
            yield None
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                except (ValueError, KeyError):
                    logger.warning("Ignoring malformed change event on %s", channel)
                    continue
                logger.debug("%s on %s: %d ids", event_type, channel, len(data.get("ids", [])))
                yield None
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
