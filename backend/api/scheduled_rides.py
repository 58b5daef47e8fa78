"""
Scheduled Rides API.

Query, create, override, delete scheduled rides and ingest live GPS
samples. Every change that viewers care about is pushed on the realtime
channel after the response has been produced.
"""

import logging
from typing import Iterable, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from backend.api.deps import (
    ROLE_OPERATOR,
    ROLE_PLANNER,
    get_event_publisher,
    get_ride_tracking_service,
    require_role,
)
from backend.db import schemas
from backend.db.database import get_db
from backend.models import Resolved, RideEvent, RideStatus
from backend.services.ride_tracking import PopulatedRide, RideTrackingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduled-rides", tags=["scheduled-rides"])


def _to_ride_response(populated: PopulatedRide) -> schemas.ScheduledRideResponse:
    ride = populated.ride
    bus = (
        schemas.BusResponse.model_validate(populated.bus.record)
        if isinstance(populated.bus, Resolved) else None
    )
    route = (
        schemas.RouteResponse.model_validate(populated.route.record)
        if isinstance(populated.route, Resolved) else None
    )
    location = ride.current_location
    return schemas.ScheduledRideResponse(
        id=str(ride.id),
        bus_id=str(ride.bus_id),
        route_id=str(ride.route_id),
        bus=bus,
        route=route,
        date=ride.date,
        departure_time=ride.departure_time,
        status=RideStatus(ride.status),
        current_location=schemas.LocationResponse(**location) if location else None,
        created_at=ride.created_at,
        updated_at=ride.updated_at,
    )


async def publish_events(publisher, events: List[RideEvent]) -> None:
    """Best-effort broadcast; failures are logged, never raised."""
    try:
        await publisher.publish_all(events)
    except Exception as e:
        logger.warning(f"Broadcast of {len(events)} event(s) failed: {e}")


def _schedule_broadcast(background_tasks: BackgroundTasks, publisher, events: Iterable[RideEvent]) -> None:
    events = list(events)
    if events:
        # One task for all events keeps their order for this ride.
        background_tasks.add_task(publish_events, publisher, events)


@router.get("", response_model=schemas.RideListEnvelope)
def list_scheduled_rides(
    date: Optional[str] = Query(default=None, description="Calendar date YYYY-MM-DD (default: today)"),
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
) -> schemas.RideListEnvelope:
    rides = [_to_ride_response(r) for r in service.list_rides(db, date)]
    return schemas.RideListEnvelope(count=len(rides), data=rides)


@router.get("/{ride_id}", response_model=schemas.RideEnvelope)
def get_scheduled_ride(
    ride_id: str,
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
) -> schemas.RideEnvelope:
    return schemas.RideEnvelope(data=_to_ride_response(service.get_ride(db, ride_id)))


@router.post(
    "",
    response_model=schemas.RideEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(ROLE_PLANNER))],
)
def create_scheduled_ride(
    payload: schemas.ScheduledRideCreate,
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
) -> schemas.RideEnvelope:
    return schemas.RideEnvelope(data=_to_ride_response(service.create_ride(db, payload)))


@router.put(
    "/{ride_id}",
    response_model=schemas.RideEnvelope,
    dependencies=[Depends(require_role(ROLE_OPERATOR))],
)
def update_scheduled_ride(
    ride_id: str,
    payload: schemas.ScheduledRideUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
    publisher=Depends(get_event_publisher),
) -> schemas.RideEnvelope:
    result = service.update_ride(db, ride_id, payload)
    _schedule_broadcast(background_tasks, publisher, result.events)
    return schemas.RideEnvelope(data=_to_ride_response(result.ride))


@router.post(
    "/{ride_id}/location",
    response_model=schemas.RideEnvelope,
    dependencies=[Depends(require_role(ROLE_OPERATOR))],
)
def update_ride_location(
    ride_id: str,
    payload: schemas.LocationUpdateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
    publisher=Depends(get_event_publisher),
) -> schemas.RideEnvelope:
    result = service.ingest_location(db, ride_id, payload.lat, payload.lng)
    _schedule_broadcast(background_tasks, publisher, result.events)
    return schemas.RideEnvelope(data=_to_ride_response(result.ride))


@router.delete(
    "/{ride_id}",
    response_model=schemas.MessageEnvelope,
    dependencies=[Depends(require_role(ROLE_PLANNER))],
)
def delete_scheduled_ride(
    ride_id: str,
    db: Session = Depends(get_db),
    service: RideTrackingService = Depends(get_ride_tracking_service),
) -> schemas.MessageEnvelope:
    service.delete_ride(db, ride_id)
    return schemas.MessageEnvelope(message="Scheduled ride deleted successfully")
