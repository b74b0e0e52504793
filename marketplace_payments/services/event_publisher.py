import json
import logging
from collections import deque
from typing import Deque, Protocol
from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool

logger = logging.getLogger(__name__)

PAYMENT_EVENTS_CHANNEL = "payments:events"
IN_MEMORY_MAX_MESSAGES = 1000


class EventPublisher(Protocol):
    async def publish(self, event_type: str, payload: dict) -> None: ...

    async def close(self) -> None: ...


class InMemoryEventPublisher:
    """Keeps the most recent published messages in memory. Used in local runs and tests."""

    def __init__(self, max_messages: int = IN_MEMORY_MAX_MESSAGES):
        self.messages: Deque[dict] = deque(maxlen=max_messages)

    async def publish(self, event_type: str, payload: dict) -> None:
        self.messages.append({"type": event_type, "payload": payload})

    async def close(self) -> None:
        self.messages.clear()


class RedisEventPublisher:
    """Publishes payment events on a Redis pub/sub channel for the realtime relay."""

    def __init__(self, redis_url: str, channel: str = PAYMENT_EVENTS_CHANNEL):
        self.channel = channel
        self.pool = ConnectionPool.from_url(redis_url)
        self.client = Redis(connection_pool=self.pool)

    async def publish(self, event_type: str, payload: dict) -> None:
        message = json.dumps({"type": event_type, "payload": payload}, default=str)
        await self.client.publish(self.channel, message)

    async def close(self) -> None:
        await self.client.aclose()
        await self.pool.disconnect()


def build_event_publisher(backend: str, redis_url: str) -> EventPublisher:
    if backend == "redis":
        return RedisEventPublisher(redis_url)
    if backend != "memory":
        logger.warning(f"Unknown EVENT_PUBLISHER {backend!r}, using the in-memory publisher")
    return InMemoryEventPublisher()
