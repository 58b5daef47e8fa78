"""
WebSocket module for the ride tracking backend.

Provides the realtime fan-out of ride location/status events to every
connected viewer using FastAPI's native WebSocket support.

Delivery is fire-and-forget: no acknowledgements, no per-client queue and
no replay. A client that reconnects must re-fetch current state through
GET /api/scheduled-rides.
"""

from fastapi import WebSocket
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
import json
import asyncio
import logging

from backend.models import (
    ALL_RIDES_TOPIC,
    LOCATION_UPDATE_EVENT,
    STATUS_UPDATE_EVENT,
    RideEvent,
    RideStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[RideEvent], Awaitable[None]]


def ride_topic(ride_id: str) -> str:
    """Topic carrying only one ride's events."""
    return f"ride:{ride_id}"


class RideEventBroadcaster:
    """
    In-process publish/subscribe hub for ride events.

    Every event goes to the "all rides" topic and to the event's own
    per-ride topic, so subscribers can pick either without publishers
    knowing who listens.
    """

    def __init__(self):
        # topic -> {subscription_id: handler}
        self._subscribers: Dict[str, Dict[int, EventHandler]] = {}
        self._next_id = 0

    def subscribe(self, handler: EventHandler, topic: str = ALL_RIDES_TOPIC) -> Callable[[], None]:
        """
        Register an async handler for a topic.

        Returns:
            A callable that removes the subscription (idempotent)
        """
        self._next_id += 1
        subscription_id = self._next_id
        self._subscribers.setdefault(topic, {})[subscription_id] = handler

        def unsubscribe() -> None:
            handlers = self._subscribers.get(topic)
            if handlers is None:
                return
            handlers.pop(subscription_id, None)
            if not handlers:
                del self._subscribers[topic]

        return unsubscribe

    def _handlers_for(self, event: RideEvent) -> List[EventHandler]:
        handlers: List[EventHandler] = []
        for topic in (ALL_RIDES_TOPIC, ride_topic(event.ride_id)):
            handlers.extend(self._subscribers.get(topic, {}).values())
        return handlers

    async def publish(self, event: RideEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        A failing subscriber is logged and skipped; it never stops delivery
        to the others and never propagates to the publisher.

        Returns:
            Number of subscribers that accepted the event
        """
        delivered = 0
        for handler in self._handlers_for(event):
            try:
                await handler(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Subscriber failed for {event.name} ({event.ride_id}): {e}")
        return delivered

    async def publish_all(self, events: Iterable[RideEvent]) -> int:
        """Publish events one after another, preserving their order."""
        total = 0
        for event in events:
            total += await self.publish(event)
        return total

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        if topic:
            return len(self._subscribers.get(topic, {}))
        return sum(len(handlers) for handlers in self._subscribers.values())


class ConnectionManager:
    """
    Manages WebSocket connections for ride event streaming.

    Each accepted socket becomes one broadcaster subscription; a socket that
    fails a send is dropped.
    """

    def __init__(self, broadcaster: RideEventBroadcaster):
        self.broadcaster = broadcaster
        # websocket -> unsubscribe callable
        self.active_connections: Dict[WebSocket, Callable[[], None]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, topic: str = ALL_RIDES_TOPIC) -> bool:
        """
        Accept and register a new WebSocket connection.

        Args:
            websocket: The WebSocket connection to register
            topic: Broadcaster topic to follow (all rides by default)

        Returns:
            True if connection was accepted, False otherwise
        """
        try:
            await websocket.accept()
        except Exception as e:
            logger.error(f"Failed to accept WebSocket connection: {e}")
            return False

        async def deliver(event: RideEvent) -> None:
            await self._deliver(websocket, event)

        async with self._lock:
            self.active_connections[websocket] = self.broadcaster.subscribe(deliver, topic)

        logger.info(f"WebSocket connected ({topic}). Total connections: {len(self.active_connections)}")
        return True

    async def _deliver(self, websocket: WebSocket, event: RideEvent) -> None:
        try:
            await websocket.send_text(json.dumps(event.to_message()))
        except Exception:
            logger.debug(f"Dropping WebSocket after failed send of {event.name}")
            await self._forget(websocket)
            raise

    async def _forget(self, websocket: WebSocket) -> bool:
        async with self._lock:
            unsubscribe = self.active_connections.pop(websocket, None)
        if unsubscribe is None:
            return False
        unsubscribe()
        return True

    async def disconnect(self, websocket: WebSocket) -> None:
        """
        Unregister and close a WebSocket connection.

        Args:
            websocket: The WebSocket connection to unregister
        """
        await self._forget(websocket)
        try:
            await websocket.close()
        except Exception:
            pass  # Connection might already be closed

    async def send_to_client(self, websocket: WebSocket, data: dict) -> bool:
        """
        Send a message to a specific client.

        Returns:
            True if message was sent successfully
        """
        try:
            await websocket.send_json(data)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to specific WebSocket: {e}")
            return False

    def get_connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self.active_connections)


# Global broadcaster / connection manager instances
broadcaster = RideEventBroadcaster()
manager = ConnectionManager(broadcaster)


# Message builders for consistent protocol
def build_location_update_event(
    ride_id: str,
    location: Dict[str, Any],
    bus_number: Optional[str] = None,
) -> RideEvent:
    """
    Build a ride-location-update event.

    Args:
        ride_id: The ride ID
        location: JSON-ready {lat, lng, timestamp}
        bus_number: Human-readable bus number, when the bus is known

    Returns:
        RideEvent ready to publish
    """
    data: Dict[str, Any] = {"rideId": ride_id, "location": location}
    if bus_number:
        data["busNumber"] = bus_number
    return RideEvent(name=LOCATION_UPDATE_EVENT, ride_id=ride_id, data=data)


def build_status_update_event(ride_id: str, status: RideStatus) -> RideEvent:
    """Build a ride-status-update event."""
    return RideEvent(
        name=STATUS_UPDATE_EVENT,
        ride_id=ride_id,
        data={"rideId": ride_id, "status": RideStatus(status).value},
    )


def build_connected_message(topic: str, heartbeat_interval: int) -> dict:
    """Build the greeting sent right after a socket is accepted."""
    return {
        "type": "connected",
        "topic": topic,
        "heartbeat_interval": heartbeat_interval,
        "timestamp": utcnow().isoformat() + "Z"
    }


def build_pong_message() -> dict:
    """Build a pong response for heartbeat."""
    return {
        "type": "pong",
        "timestamp": utcnow().isoformat() + "Z"
    }
