"""
Redis Pub/Sub relay for ride events.

When several server processes run behind a load balancer, each one only
knows its own WebSocket clients. With REDIS_RELAY_ENABLED=true every
process publishes its events to one Redis channel and a listener in each
process forwards what it hears to the local broadcaster.

Usage:
    # In main.py lifespan:
    relay = RedisEventRelay(broadcaster)
    await relay.start()
"""

import asyncio
import json
import logging
from typing import Iterable, Optional

from redis.asyncio import Redis

from backend.config import config
from backend.models import RideEvent
from backend.websocket import RideEventBroadcaster

logger = logging.getLogger(__name__)


def encode_event(event: RideEvent) -> str:
    return json.dumps({"name": event.name, "ride_id": event.ride_id, "data": event.data})


def decode_event(raw: str) -> RideEvent:
    payload = json.loads(raw)
    return RideEvent(name=payload["name"], ride_id=str(payload["ride_id"]), data=payload.get("data") or {})


class RedisEventRelay:
    """Publishes events to Redis and forwards the channel to a local broadcaster."""

    def __init__(
        self,
        broadcaster: RideEventBroadcaster,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
        client: Optional[Redis] = None,
    ):
        self.broadcaster = broadcaster
        self.channel = channel or config.REDIS_CHANNEL
        self._redis = client or Redis.from_url(redis_url or config.REDIS_URL, decode_responses=True)
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def is_listening(self) -> bool:
        return self._listener_task is not None and not self._listener_task.done()

    async def publish(self, event: RideEvent) -> int:
        """
        Publish one event to the shared channel.

        Falls back to local delivery when Redis rejects the message so
        clients of this process still see it.
        """
        try:
            return await self._redis.publish(self.channel, encode_event(event))
        except Exception as e:
            logger.warning(f"Redis publish failed for {event.name} ({event.ride_id}), delivering locally: {e}")
            return await self.broadcaster.publish(event)

    async def publish_all(self, events: Iterable[RideEvent]) -> int:
        total = 0
        for event in events:
            total += await self.publish(event)
        return total

    async def listen(self) -> None:
        """
        Forward messages from the channel to the local broadcaster.

        Runs until cancelled; should be started as a background task.
        """
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info(f"Event relay listening on {self.channel}")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = decode_event(message["data"])
                except (ValueError, KeyError, TypeError) as e:
                    logger.error(f"Failed to decode relayed event: {e}")
                    continue
                await self.broadcaster.publish(event)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def start(self) -> bool:
        """
        Start the listener as a background task.

        Returns:
            True if listener was started, False otherwise
        """
        if self.is_listening:
            logger.debug("Event relay already running")
            return True
        try:
            await self._redis.ping()
        except Exception as e:
            logger.warning(f"Redis not available, event relay disabled: {e}")
            return False
        self._listener_task = asyncio.create_task(self.listen())
        return True

    async def stop(self) -> None:
        """Cancel the listener and close the Redis connection."""
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        await self._redis.aclose()
        logger.info("Event relay stopped")
