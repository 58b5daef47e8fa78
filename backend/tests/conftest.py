"""
Pytest configuration and shared fixtures for ride tracking backend tests.
"""
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.db import crud, schemas
from backend.db.database import get_db
from backend.db.models import Base
from backend.services.ride_tracking import RideTrackingService
from backend.websocket import ConnectionManager, RideEventBroadcaster

# Route endpoints (Bangalore), roughly 4.4 km apart
DEPARTURE = (12.9716, 77.5946)
ARRIVAL = (13.0020, 77.6200)

OPERATOR_HEADERS = {"X-User-Id": "op-1", "X-User-Role": "operator"}
PLANNER_HEADERS = {"X-User-Id": "pl-1", "X-User-Role": "planner"}


class FakeClock:
    """Deterministic clock; each call returns the current value then advances one second."""

    def __init__(self, start: datetime = datetime(2026, 10, 18, 8, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        value = self.now
        self.now = self.now + timedelta(seconds=1)
        return value


# ============================================================
# DATABASE FIXTURES
# ============================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================
# RECORD FIXTURES
# ============================================================

@pytest.fixture
def route(db_session):
    return crud.create_route(db_session, schemas.RouteCreate(
        route_number="R-101",
        route_name="Majestic to Hebbal",
        departure_location="Majestic",
        departure_lat=DEPARTURE[0],
        departure_lng=DEPARTURE[1],
        arrival_location="Hebbal",
        arrival_lat=ARRIVAL[0],
        arrival_lng=ARRIVAL[1],
        ride_time="45 mins",
    ))


@pytest.fixture
def bus(db_session):
    return crud.create_bus(db_session, schemas.BusCreate(bus_number="KA-01-F-1234", bus_type="AC"))


@pytest.fixture
def make_ride(db_session, route, bus):
    """Factory for rides on the shared route/bus."""
    def _make(day: date = date(2026, 10, 18), departure_time: str = "08:00", status: str = "Scheduled"):
        return crud.create_ride(db_session, schemas.ScheduledRideCreate(
            bus_id=bus.id,
            route_id=route.id,
            date=day,
            departure_time=departure_time,
            status=status,
        ))
    return _make


@pytest.fixture
def ride(make_ride):
    return make_ride()


# ============================================================
# SERVICE / REALTIME FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return RideTrackingService(clock=clock)


@pytest.fixture
def event_broadcaster():
    """Fresh broadcaster, isolated from the module-level one."""
    return RideEventBroadcaster()


@pytest.fixture
def websocket_manager(event_broadcaster):
    return ConnectionManager(event_broadcaster)


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket for testing."""
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_text = AsyncMock()
    ws.send_json = AsyncMock()
    ws.receive_text = AsyncMock()
    return ws


# ============================================================
# API FIXTURES
# ============================================================

@pytest.fixture
def client(session_factory):
    """TestClient bound to the in-memory database (lifespan is not run)."""
    from backend.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
