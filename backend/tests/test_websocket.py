"""
Tests for WebSocket real-time fan-out.

Validates WebSocket functionality including:
- Broadcaster topics and subscriber isolation
- Connection establishment and cleanup
- Message protocol (event envelope, connected, pong)
"""

import json
from unittest.mock import AsyncMock

import pytest

from backend.models import ALL_RIDES_TOPIC, LOCATION_UPDATE_EVENT, STATUS_UPDATE_EVENT, RideStatus
from backend.websocket import (
    build_connected_message,
    build_location_update_event,
    build_pong_message,
    build_status_update_event,
    ride_topic,
)


def _status_event(ride_id="ride-1", status=RideStatus.IN_PROGRESS):
    return build_status_update_event(ride_id, status)


# ============================================================
# TESTS - BROADCASTER
# ============================================================

class TestRideEventBroadcaster:

    @pytest.mark.asyncio
    async def test_all_rides_subscriber_receives_every_event(self, event_broadcaster):
        received = []

        async def handler(event):
            received.append(event)

        event_broadcaster.subscribe(handler)
        await event_broadcaster.publish(_status_event("ride-1"))
        await event_broadcaster.publish(_status_event("ride-2"))

        assert [e.ride_id for e in received] == ["ride-1", "ride-2"]

    @pytest.mark.asyncio
    async def test_ride_topic_filters_other_rides(self, event_broadcaster):
        received = []

        async def handler(event):
            received.append(event)

        event_broadcaster.subscribe(handler, ride_topic("ride-1"))
        await event_broadcaster.publish(_status_event("ride-2"))
        delivered = await event_broadcaster.publish(_status_event("ride-1"))

        assert delivered == 1
        assert [e.ride_id for e in received] == ["ride-1"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self, event_broadcaster):
        failing = AsyncMock(side_effect=RuntimeError("socket gone"))
        healthy = AsyncMock()
        event_broadcaster.subscribe(failing)
        event_broadcaster.subscribe(healthy)

        delivered = await event_broadcaster.publish(_status_event())

        assert delivered == 1
        healthy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self, event_broadcaster):
        handler = AsyncMock()
        unsubscribe = event_broadcaster.subscribe(handler)

        unsubscribe()
        unsubscribe()
        delivered = await event_broadcaster.publish(_status_event())

        assert delivered == 0
        assert event_broadcaster.subscriber_count() == 0
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_all_preserves_order(self, event_broadcaster):
        received = []

        async def handler(event):
            received.append(event.name)

        event_broadcaster.subscribe(handler)
        location = build_location_update_event("ride-1", {"lat": 1.0, "lng": 2.0, "timestamp": "t"})
        total = await event_broadcaster.publish_all([location, _status_event()])

        assert total == 2
        assert received == [LOCATION_UPDATE_EVENT, STATUS_UPDATE_EVENT]

    def test_subscriber_count_per_topic(self, event_broadcaster):
        event_broadcaster.subscribe(AsyncMock())
        event_broadcaster.subscribe(AsyncMock(), ride_topic("ride-1"))

        assert event_broadcaster.subscriber_count() == 2
        assert event_broadcaster.subscriber_count(ALL_RIDES_TOPIC) == 1
        assert event_broadcaster.subscriber_count(ride_topic("ride-9")) == 0


# ============================================================
# TESTS - CONNECTION MANAGER
# ============================================================

class TestConnectionManager:
    """Test ConnectionManager functionality."""

    @pytest.mark.asyncio
    async def test_connect_accepts_websocket(self, websocket_manager, mock_websocket, event_broadcaster):
        result = await websocket_manager.connect(mock_websocket)

        assert result is True
        mock_websocket.accept.assert_called_once()
        assert mock_websocket in websocket_manager.active_connections
        assert event_broadcaster.subscriber_count(ALL_RIDES_TOPIC) == 1

    @pytest.mark.asyncio
    async def test_connect_handles_accept_failure(self, websocket_manager, mock_websocket):
        mock_websocket.accept.side_effect = Exception("Accept failed")

        result = await websocket_manager.connect(mock_websocket)

        assert result is False
        assert websocket_manager.get_connection_count() == 0

    @pytest.mark.asyncio
    async def test_disconnect_removes_connection(self, websocket_manager, mock_websocket, event_broadcaster):
        await websocket_manager.connect(mock_websocket)

        await websocket_manager.disconnect(mock_websocket)

        mock_websocket.close.assert_called_once()
        assert websocket_manager.get_connection_count() == 0
        assert event_broadcaster.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_disconnect_tolerates_closed_socket(self, websocket_manager, mock_websocket):
        await websocket_manager.connect(mock_websocket)
        mock_websocket.close.side_effect = RuntimeError("already closed")

        await websocket_manager.disconnect(mock_websocket)

        assert websocket_manager.get_connection_count() == 0

    @pytest.mark.asyncio
    async def test_published_event_reaches_every_client(self, websocket_manager, event_broadcaster):
        ws1 = AsyncMock()
        ws2 = AsyncMock()
        await websocket_manager.connect(ws1)
        await websocket_manager.connect(ws2)

        sent_count = await event_broadcaster.publish(_status_event("ride-1"))

        assert sent_count == 2
        sent = json.loads(ws1.send_text.call_args[0][0])
        assert sent == {"event": STATUS_UPDATE_EVENT, "data": {"rideId": "ride-1", "status": "In Progress"}}
        ws2.send_text.assert_called_once()

    @pytest.mark.asyncio
    async def test_ride_scoped_client_only_gets_its_ride(self, websocket_manager, event_broadcaster):
        scoped = AsyncMock()
        await websocket_manager.connect(scoped, ride_topic("ride-1"))

        await event_broadcaster.publish(_status_event("ride-2"))
        await event_broadcaster.publish(_status_event("ride-1"))

        scoped.send_text.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_send_drops_connection(self, websocket_manager, event_broadcaster):
        broken = AsyncMock()
        broken.send_text.side_effect = RuntimeError("connection reset")
        healthy = AsyncMock()
        await websocket_manager.connect(broken)
        await websocket_manager.connect(healthy)

        delivered = await event_broadcaster.publish(_status_event())

        assert delivered == 1
        assert broken not in websocket_manager.active_connections
        assert healthy in websocket_manager.active_connections

    @pytest.mark.asyncio
    async def test_send_to_client(self, websocket_manager, mock_websocket):
        assert await websocket_manager.send_to_client(mock_websocket, {"type": "pong"}) is True
        mock_websocket.send_json.assert_called_once_with({"type": "pong"})

        mock_websocket.send_json.side_effect = RuntimeError("closed")
        assert await websocket_manager.send_to_client(mock_websocket, {"type": "pong"}) is False


# ============================================================
# TESTS - MESSAGE BUILDERS
# ============================================================

class TestMessageBuilders:

    def test_location_update_event(self):
        location = {"lat": 12.97, "lng": 77.59, "timestamp": "2026-10-18T08:00:00"}

        event = build_location_update_event("ride-1", location, bus_number="KA-01")

        assert event.name == LOCATION_UPDATE_EVENT
        assert event.ride_id == "ride-1"
        assert event.to_message() == {
            "event": LOCATION_UPDATE_EVENT,
            "data": {"rideId": "ride-1", "location": location, "busNumber": "KA-01"},
        }

    def test_location_update_event_without_bus(self):
        event = build_location_update_event("ride-1", {"lat": 0, "lng": 0, "timestamp": "t"})

        assert "busNumber" not in event.data

    def test_status_update_event_accepts_strings(self):
        event = build_status_update_event("ride-1", "Completed")

        assert event.data == {"rideId": "ride-1", "status": "Completed"}

    def test_status_update_event_rejects_unknown_status(self):
        with pytest.raises(ValueError):
            build_status_update_event("ride-1", "Lost")

    def test_connected_message(self):
        message = build_connected_message(ride_topic("ride-1"), 30)

        assert message["type"] == "connected"
        assert message["topic"] == "ride:ride-1"
        assert message["heartbeat_interval"] == 30
        assert message["timestamp"].endswith("Z")

    def test_pong_message(self):
        assert build_pong_message()["type"] == "pong"
