"""
SQLAlchemy models for the ride tracking database.

These models define the database schema for:
- Routes (fixed departure/arrival endpoints)
- Buses
- Scheduled rides (lifecycle status and last known location)
"""

from sqlalchemy import (
    Column, String, Float, DateTime, Date,
    Boolean, Text, Index
)
from sqlalchemy.orm import declarative_base
import uuid

from backend.models import RideStatus, utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class RouteModel(Base):
    """Bus route between two fixed endpoints."""
    __tablename__ = "routes"

    id = Column(String(36), primary_key=True, default=_new_id)
    route_number = Column(String, nullable=False, unique=True)
    route_name = Column(String, nullable=False)
    departure_location = Column(String, nullable=False)
    departure_lat = Column(Float, nullable=False)
    departure_lng = Column(Float, nullable=False)
    arrival_location = Column(String, nullable=False)
    arrival_lat = Column(Float, nullable=False)
    arrival_lng = Column(Float, nullable=False)
    polyline = Column(Text, nullable=True)  # encoded path, display only
    ride_time = Column(String, nullable=False, default="")  # estimated duration, e.g. "45 mins"
    geofence_radius_meters = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def departure_coordinates(self) -> dict:
        return {"lat": self.departure_lat, "lng": self.departure_lng}

    @property
    def arrival_coordinates(self) -> dict:
        return {"lat": self.arrival_lat, "lng": self.arrival_lng}

    def __repr__(self):
        return f"<RouteModel(id='{self.id}', route_number='{self.route_number}')>"


class BusModel(Base):
    """Physical bus that can be assigned to scheduled rides."""
    __tablename__ = "buses"

    id = Column(String(36), primary_key=True, default=_new_id)
    bus_number = Column(String, nullable=False, unique=True)
    bus_type = Column(String, nullable=False, default="Non-AC")  # AC, Non-AC, Mini, Deluxe
    driver_name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<BusModel(id='{self.id}', bus_number='{self.bus_number}')>"


class ScheduledRideModel(Base):
    """One dated, timed assignment of a bus to a route."""
    __tablename__ = "scheduled_rides"
    __table_args__ = (
        Index("ix_scheduled_rides_date_departure", "date", "departure_time"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    # Plain references: bus/route records live in the admin store and may be
    # deleted independently of the ride.
    bus_id = Column(String(36), nullable=False, index=True)
    route_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    departure_time = Column(String(5), nullable=False)  # "HH:MM"
    status = Column(String, nullable=False, default=RideStatus.SCHEDULED.value)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    current_location_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def current_location(self) -> dict | None:
        if self.current_location_at is None or self.current_lat is None or self.current_lng is None:
            return None
        return {
            "lat": self.current_lat,
            "lng": self.current_lng,
            "timestamp": self.current_location_at,
        }

    def __repr__(self):
        return (
            f"<ScheduledRideModel(id='{self.id}', date='{self.date}', "
            f"departure_time='{self.departure_time}', status='{self.status}')>"
        )
