"""
Live ride tracking service.

Ties the ride store, the geofence evaluator and the event builders
together. Methods are synchronous and return the events to publish; the
API layer hands those to the broadcaster after the response is sent, so
persistence never depends on broadcast success.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.db import crud, schemas
from backend.db.models import ScheduledRideModel
from backend.exceptions import NotFoundError, UpstreamUnavailable, ValidationError
from backend.models import (
    Coordinates,
    GeofenceDecision,
    Reference,
    Resolved,
    RideEvent,
    RideStatus,
    STATUS_UPDATE_EVENT,
    Unresolved,
    utcnow,
)
from backend.services import geofence
from backend.websocket import build_location_update_event, build_status_update_event

logger = logging.getLogger(__name__)


@dataclass
class PopulatedRide:
    ride: ScheduledRideModel
    bus: Reference
    route: Reference

    @property
    def bus_number(self) -> Optional[str]:
        if isinstance(self.bus, Resolved):
            return self.bus.record.bus_number
        return None


@dataclass
class IngestResult:
    ride: PopulatedRide
    decision: Optional[GeofenceDecision] = None
    events: List[RideEvent] = field(default_factory=list)
    stale: bool = False

    @property
    def transitioned(self) -> bool:
        return any(event.name == STATUS_UPDATE_EVENT for event in self.events)


@dataclass
class UpdateResult:
    ride: PopulatedRide
    events: List[RideEvent] = field(default_factory=list)


def _format_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(item) for item in err.get("loc", ()) if item != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _coerce(model: type, payload: Union[BaseModel, Dict[str, Any]]) -> Any:
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_format_validation_error(exc)) from exc


def parse_coordinate(name: str, value: Any, limit: float) -> float:
    """Parse one coordinate; must be present, numeric, finite and within +/- limit."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number")
    if abs(number) > limit:
        raise ValidationError(f"{name} must be between -{limit:g} and {limit:g}")
    return number


def parse_query_date(value: Union[str, date, None]) -> date:
    """
    Resolve the query date.

    None means "today" in the server's local time zone; rides carry no
    time zone of their own.
    """
    if value is None or value == "":
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("date must be in YYYY-MM-DD format")


class RideTrackingService:
    """Operations on scheduled rides: ingest, override, query, create, delete."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        geofence_radius_m: Optional[float] = None,
    ):
        self.clock = clock
        self.geofence_radius_m = geofence_radius_m

    # ------------------------------------------------------------------
    # Collaborator lookups
    # ------------------------------------------------------------------

    def resolve_route(self, db: Session, route_id: str) -> Reference:
        try:
            route = crud.get_route(db, route_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamUnavailable(f"Route lookup failed for {route_id}: {e}") from e
        return Resolved(route) if route is not None else Unresolved(route_id)

    def resolve_bus(self, db: Session, bus_id: str) -> Reference:
        try:
            bus = crud.get_bus(db, bus_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamUnavailable(f"Bus lookup failed for {bus_id}: {e}") from e
        return Resolved(bus) if bus is not None else Unresolved(bus_id)

    def _resolve_or_unresolved(self, resolver: Callable[[Session, str], Reference], db: Session, ref_id: str) -> Reference:
        try:
            return resolver(db, ref_id)
        except UpstreamUnavailable as e:
            logger.warning(str(e))
            return Unresolved(ref_id)

    def populate(self, db: Session, ride: ScheduledRideModel) -> PopulatedRide:
        return PopulatedRide(
            ride=ride,
            bus=self._resolve_or_unresolved(self.resolve_bus, db, ride.bus_id),
            route=self._resolve_or_unresolved(self.resolve_route, db, ride.route_id),
        )

    def _load_ride(self, db: Session, ride_id: str) -> ScheduledRideModel:
        ride = crud.get_ride(db, ride_id)
        if ride is None:
            raise NotFoundError("Scheduled ride not found")
        return ride

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_ride(self, db: Session, ride_id: str) -> PopulatedRide:
        return self.populate(db, self._load_ride(db, ride_id))

    def list_rides(self, db: Session, day: Union[str, date, None] = None) -> List[PopulatedRide]:
        """
        All rides for a calendar date, populated, ordered by departure time.

        Args:
            db: Database session
            day: Date or "YYYY-MM-DD"; defaults to today (server local time)

        Returns:
            List of PopulatedRide
        """
        query_date = parse_query_date(day)
        rides = crud.list_rides_for_date(db, query_date)

        buses = crud.get_buses_by_ids(db, [r.bus_id for r in rides])
        routes = crud.get_routes_by_ids(db, [r.route_id for r in rides])

        populated = []
        for ride in rides:
            bus = buses.get(ride.bus_id)
            route = routes.get(ride.route_id)
            populated.append(PopulatedRide(
                ride=ride,
                bus=Resolved(bus) if bus is not None else Unresolved(ride.bus_id),
                route=Resolved(route) if route is not None else Unresolved(ride.route_id),
            ))
        return populated

    # ------------------------------------------------------------------
    # Location ingest
    # ------------------------------------------------------------------

    def ingest_location(self, db: Session, ride_id: str, lat: Any, lng: Any) -> IngestResult:
        """
        Record a GPS sample for a ride and run the geofence.

        Steps: validate, load, store location, evaluate, store transition.
        A stale sample (older than the stored one) is ignored entirely.

        Returns:
            IngestResult with the populated ride and the events to publish,
            location-update first
        """
        sample = Coordinates(
            lat=parse_coordinate("lat", lat, 90),
            lng=parse_coordinate("lng", lng, 180),
        )

        ride = self._load_ride(db, ride_id)
        status_before = RideStatus(ride.status)
        timestamp = self.clock()

        if not crud.record_location(db, ride_id, sample.lat, sample.lng, timestamp):
            ride = self._load_ride(db, ride_id)
            logger.info(f"Ignored stale location sample for ride {ride_id}")
            return IngestResult(ride=self.populate(db, ride), stale=True)

        route_ref = self._resolve_or_unresolved(self.resolve_route, db, ride.route_id)
        decision = geofence.evaluate(status_before, route_ref, sample, self.geofence_radius_m)

        transitioned = False
        if decision.transitioned:
            transitioned = crud.transition_status(
                db, ride_id, status_before.value, decision.to_status.value
            )
            if transitioned:
                logger.info(
                    f"Ride {ride_id} geofence transition {status_before.value} -> "
                    f"{decision.to_status.value} ({decision.distance_m:.1f} m)"
                )
            else:
                logger.info(f"Ride {ride_id} status changed concurrently; skipped {decision.to_status.value}")
        elif decision.skipped_reason == "route_unresolved":
            logger.warning(f"Route {ride.route_id} unavailable; geofence skipped for ride {ride_id}")

        db.refresh(ride)
        populated = PopulatedRide(
            ride=ride,
            bus=self._resolve_or_unresolved(self.resolve_bus, db, ride.bus_id),
            route=route_ref,
        )

        # The refreshed row may already hold a newer concurrent sample.
        location = schemas.LocationResponse(lat=sample.lat, lng=sample.lng, timestamp=timestamp).model_dump(mode="json")
        events = [build_location_update_event(ride_id, location, populated.bus_number)]
        if transitioned:
            events.append(build_status_update_event(ride_id, decision.to_status))

        return IngestResult(ride=populated, decision=decision, events=events)

    # ------------------------------------------------------------------
    # Operator overrides
    # ------------------------------------------------------------------

    def update_ride(
        self,
        db: Session,
        ride_id: str,
        changes: Union[schemas.ScheduledRideUpdate, Dict[str, Any]],
    ) -> UpdateResult:
        """
        Apply an operator update (status and/or schedule fields).

        No geofence logic runs here; this is the authority for Cancelled and
        for correcting automatic transitions. Last write wins.
        """
        update = _coerce(schemas.ScheduledRideUpdate, changes)
        fields = update.model_dump(exclude_unset=True)

        nulls = [name for name, value in fields.items() if value is None]
        if nulls:
            raise ValidationError(f"{', '.join(sorted(nulls))} cannot be null")
        if "status" in fields:
            fields["status"] = RideStatus(fields["status"]).value

        previous = self._load_ride(db, ride_id)
        previous_status = previous.status

        ride = crud.update_ride(db, ride_id, fields)
        if ride is None:
            raise NotFoundError("Scheduled ride not found")

        events: List[RideEvent] = []
        if "status" in fields:
            logger.info(f"Ride {ride_id} status set by operator: {previous_status} -> {ride.status}")
            events.append(build_status_update_event(ride_id, ride.status))

        return UpdateResult(ride=self.populate(db, ride), events=events)

    # ------------------------------------------------------------------
    # Planner actions
    # ------------------------------------------------------------------

    def create_ride(
        self,
        db: Session,
        payload: Union[schemas.ScheduledRideCreate, Dict[str, Any]],
    ) -> PopulatedRide:
        """Create a ride after checking that its bus and route exist."""
        data = _coerce(schemas.ScheduledRideCreate, payload)

        bus = self.resolve_bus(db, data.bus_id)
        if not isinstance(bus, Resolved):
            raise ValidationError(f"Unknown bus: {data.bus_id}")
        route = self.resolve_route(db, data.route_id)
        if not isinstance(route, Resolved):
            raise ValidationError(f"Unknown route: {data.route_id}")

        ride = crud.create_ride(db, data)
        return PopulatedRide(ride=ride, bus=bus, route=route)

    def delete_ride(self, db: Session, ride_id: str) -> None:
        if not crud.delete_ride(db, ride_id):
            raise NotFoundError("Scheduled ride not found")


ride_tracking_service = RideTrackingService()
