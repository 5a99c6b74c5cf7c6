"""Realtime notifier - push events to a user's private channel.

Delivery is best effort. Subscribers that miss an event recover it from the
durable notification inbox and request state on their next poll.

The notifier is constructed once per application (see ``main.lifespan``) and
handed to consumers through dependency injection.
"""

import asyncio
import logging
from typing import Protocol
from uuid import UUID

import redis.asyncio as aioredis

from knowshare.app.config import Settings
from knowshare.app.models.events import NotificationEvent
from knowshare.app.realtime.channels import user_channel

logger = logging.getLogger(__name__)


class Subscription(Protocol):
    """Live stream of one user's events."""

    async def next_event(self, timeout: float) -> NotificationEvent | None:
        """Wait up to ``timeout`` seconds for the next event; None on timeout."""
        ...

    async def close(self) -> None:
        """Stop receiving events."""
        ...


class Notifier(Protocol):
    """Publishes events to user channels."""

    async def publish(self, event: NotificationEvent) -> None:
        """Deliver an event to ``event.target_user_id``'s channel.

        Raises:
            Exception: Any transport error; callers treat delivery as non-fatal
        """
        ...

    async def subscribe(self, user_id: UUID) -> Subscription:
        """Open a subscription on a user's channel."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        ...


class _QueueSubscription:
    def __init__(self, notifier: "InMemoryNotifier", user_id: UUID, queue: asyncio.Queue) -> None:
        self._notifier = notifier
        self._user_id = user_id
        self._queue = queue

    async def next_event(self, timeout: float) -> NotificationEvent | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None

    async def close(self) -> None:
        self._notifier._detach(self._user_id, self._queue)


class InMemoryNotifier:
    """In-process fan-out to per-subscriber queues (single worker, dev, tests)."""

    def __init__(self, max_queued: int = 100) -> None:
        self._max_queued = max_queued
        self._subscribers: dict[UUID, set[asyncio.Queue]] = {}

    async def publish(self, event: NotificationEvent) -> None:
        """Enqueue the event for every open subscription of the target user."""
        for queue in list(self._subscribers.get(event.target_user_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropping {event.kind} for {event.target_user_id}: subscriber queue full"
                )

    async def subscribe(self, user_id: UUID) -> Subscription:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queued)
        self._subscribers.setdefault(user_id, set()).add(queue)
        return _QueueSubscription(self, user_id, queue)

    def subscriber_count(self, user_id: UUID) -> int:
        return len(self._subscribers.get(user_id, ()))

    def _detach(self, user_id: UUID, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(user_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    async def close(self) -> None:
        self._subscribers.clear()


class _RedisSubscription:
    def __init__(self, pubsub: aioredis.client.PubSub, channel: str) -> None:
        self._pubsub = pubsub
        self._channel = channel

    async def next_event(self, timeout: float) -> NotificationEvent | None:
        message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        if message is None or message.get("type") != "message":
            return None
        return NotificationEvent.model_validate_json(message["data"])

    async def close(self) -> None:
        await self._pubsub.unsubscribe(self._channel)
        await self._pubsub.aclose()


class RedisNotifier:
    """Redis pub/sub transport, shared by every API worker."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisNotifier":
        return cls(aioredis.from_url(redis_url, decode_responses=True))

    async def publish(self, event: NotificationEvent) -> None:
        """Publish the serialized event on the target user's channel."""
        await self._client.publish(user_channel(event.target_user_id), event.model_dump_json())

    async def subscribe(self, user_id: UUID) -> Subscription:
        channel = user_channel(user_id)
        pubsub = self._client.pubsub()
        await pubsub.subscribe(channel)
        return _RedisSubscription(pubsub, channel)

    async def close(self) -> None:
        await self._client.aclose()


def create_notifier(settings: Settings) -> Notifier:
    """Pick the realtime transport for the configured environment."""
    if settings.redis_url:
        logger.info("Using Redis pub/sub notifier")
        return RedisNotifier.from_url(settings.redis_url)

    logger.info("No REDIS_URL configured, using in-process notifier")
    return InMemoryNotifier()
