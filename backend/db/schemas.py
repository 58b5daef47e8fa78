"""
Pydantic schemas for database operations.

These schemas are used for:
- Request validation (input data)
- Response serialization (output data)
- Type safety between API and database

Field names are snake_case in Python and camelCase on the wire.
"""

import re
from datetime import date as date_type, datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from backend.models import RideStatus

_DEPARTURE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def format_utc(value: datetime) -> str:
    """ISO-8601 with a Z suffix; naive values are stored as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


UtcDateTime = Annotated[datetime, PlainSerializer(format_utc, return_type=str, when_used="json")]


def normalize_departure_time(value: str) -> str:
    """Normalize "8:05" / "08:05" to zero-padded "HH:MM" so text order is time order."""
    match = _DEPARTURE_TIME_RE.match(str(value).strip())
    if not match:
        raise ValueError("departureTime must be in HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("departureTime must be a valid time of day")
    return f"{hours:02d}:{minutes:02d}"


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Location Schemas
# =============================================================================

class LocationUpdateRequest(CamelModel):
    """Body of POST /scheduled-rides/{id}/location"""
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False, description="Latitude in decimal degrees")
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False, description="Longitude in decimal degrees")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"lat": 12.9716, "lng": 77.5946}},
    )


class LocationResponse(CamelModel):
    lat: float
    lng: float
    timestamp: UtcDateTime


class CoordinatesResponse(CamelModel):
    lat: float
    lng: float


# =============================================================================
# Bus / Route Schemas
# =============================================================================

class BusCreate(CamelModel):
    """Schema for creating a bus (seeding and tests; bus CRUD lives elsewhere)"""
    id: Optional[str] = None
    bus_number: str = Field(..., min_length=1, max_length=32)
    bus_type: str = "Non-AC"
    driver_name: Optional[str] = None
    is_active: bool = True


class BusResponse(CamelModel):
    id: str
    bus_number: str
    bus_type: str
    driver_name: Optional[str] = None
    is_active: bool


class RouteCreate(CamelModel):
    """Schema for creating a route (seeding and tests; route CRUD lives elsewhere)"""
    id: Optional[str] = None
    route_number: str = Field(..., min_length=1, max_length=32)
    route_name: str
    departure_location: str
    departure_lat: float = Field(..., ge=-90, le=90)
    departure_lng: float = Field(..., ge=-180, le=180)
    arrival_location: str
    arrival_lat: float = Field(..., ge=-90, le=90)
    arrival_lng: float = Field(..., ge=-180, le=180)
    polyline: Optional[str] = None
    ride_time: str = ""
    geofence_radius_meters: Optional[float] = Field(None, gt=0)
    is_active: bool = True


class RouteResponse(CamelModel):
    id: str
    route_number: str
    route_name: str
    departure_location: str
    arrival_location: str
    departure_coordinates: CoordinatesResponse
    arrival_coordinates: CoordinatesResponse
    polyline: Optional[str] = None
    ride_time: str
    geofence_radius_meters: Optional[float] = None
    is_active: bool


# =============================================================================
# Scheduled Ride Schemas
# =============================================================================

class ScheduledRideCreate(CamelModel):
    """Schema for POST /scheduled-rides"""
    bus_id: str = Field(..., min_length=1)
    route_id: str = Field(..., min_length=1)
    date: date_type
    departure_time: str
    status: RideStatus = RideStatus.SCHEDULED

    @field_validator("departure_time")
    @classmethod
    def validate_departure_time(cls, v: str) -> str:
        return normalize_departure_time(v)


class ScheduledRideUpdate(CamelModel):
    """Schema for PUT /scheduled-rides/{id} (partial; bus/route are fixed at creation)"""
    status: Optional[RideStatus] = None
    date: Optional[date_type] = None
    departure_time: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    @field_validator("departure_time")
    @classmethod
    def validate_departure_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return normalize_departure_time(v)


class ScheduledRideResponse(CamelModel):
    id: str
    bus_id: str
    route_id: str
    bus: Optional[BusResponse] = None
    route: Optional[RouteResponse] = None
    date: date_type
    departure_time: str
    status: RideStatus
    current_location: Optional[LocationResponse] = None
    created_at: UtcDateTime
    updated_at: UtcDateTime


# =============================================================================
# Response envelopes
# =============================================================================

class RideEnvelope(CamelModel):
    success: bool = True
    data: ScheduledRideResponse


class RideListEnvelope(CamelModel):
    success: bool = True
    count: int
    data: List[ScheduledRideResponse]


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str
