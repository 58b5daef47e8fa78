"""
CRUD operations for the ride tracking database.

Provides functions to create, read, update, and delete:
- Scheduled rides (including the guarded location/status writes)
- Routes and buses (read by the tracking core, written by seeding/tests)
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from backend.models import utcnow

from . import models, schemas

logger = logging.getLogger(__name__)


# =============================================================================
# Route CRUD
# =============================================================================

def create_route(db: Session, route_data: schemas.RouteCreate) -> models.RouteModel:
    """
    Create a new route.

    Args:
        db: Database session
        route_data: Route data including both endpoints

    Returns:
        Created RouteModel instance
    """
    payload = route_data.model_dump(exclude_none=True)
    db_route = models.RouteModel(**payload)
    db.add(db_route)
    db.commit()
    db.refresh(db_route)

    logger.info(f"Created route {db_route.id} ({db_route.route_number})")
    return db_route


def get_route(db: Session, route_id: str) -> Optional[models.RouteModel]:
    """Get a route by ID."""
    return db.query(models.RouteModel).filter(models.RouteModel.id == route_id).first()


def get_routes_by_ids(db: Session, route_ids: List[str]) -> Dict[str, models.RouteModel]:
    """Load several routes at once, keyed by id."""
    if not route_ids:
        return {}
    rows = db.query(models.RouteModel).filter(models.RouteModel.id.in_(set(route_ids))).all()
    return {row.id: row for row in rows}


def delete_route(db: Session, route_id: str) -> bool:
    """Delete a route. Rides referencing it are left untouched."""
    db_route = get_route(db, route_id)
    if not db_route:
        return False
    db.delete(db_route)
    db.commit()
    logger.info(f"Deleted route {route_id}")
    return True


# =============================================================================
# Bus CRUD
# =============================================================================

def create_bus(db: Session, bus_data: schemas.BusCreate) -> models.BusModel:
    """Create a new bus."""
    payload = bus_data.model_dump(exclude_none=True)
    db_bus = models.BusModel(**payload)
    db.add(db_bus)
    db.commit()
    db.refresh(db_bus)

    logger.info(f"Created bus {db_bus.id} ({db_bus.bus_number})")
    return db_bus


def get_bus(db: Session, bus_id: str) -> Optional[models.BusModel]:
    """Get a bus by ID."""
    return db.query(models.BusModel).filter(models.BusModel.id == bus_id).first()


def get_buses_by_ids(db: Session, bus_ids: List[str]) -> Dict[str, models.BusModel]:
    """Load several buses at once, keyed by id."""
    if not bus_ids:
        return {}
    rows = db.query(models.BusModel).filter(models.BusModel.id.in_(set(bus_ids))).all()
    return {row.id: row for row in rows}


# =============================================================================
# Scheduled Ride CRUD
# =============================================================================

def create_ride(db: Session, ride_data: schemas.ScheduledRideCreate) -> models.ScheduledRideModel:
    """
    Create a new scheduled ride.

    Args:
        db: Database session
        ride_data: Validated ride fields

    Returns:
        Created ScheduledRideModel instance
    """
    db_ride = models.ScheduledRideModel(
        bus_id=ride_data.bus_id,
        route_id=ride_data.route_id,
        date=ride_data.date,
        departure_time=ride_data.departure_time,
        status=ride_data.status.value,
    )
    db.add(db_ride)
    db.commit()
    db.refresh(db_ride)

    logger.info(f"Created scheduled ride {db_ride.id} on {db_ride.date} at {db_ride.departure_time}")
    return db_ride


def get_ride(db: Session, ride_id: str) -> Optional[models.ScheduledRideModel]:
    """Get a scheduled ride by ID."""
    return db.query(models.ScheduledRideModel).filter(
        models.ScheduledRideModel.id == ride_id
    ).first()


def list_rides_for_date(db: Session, day: date) -> List[models.ScheduledRideModel]:
    """
    Get every ride whose date falls in [day, day + 1), sorted by departure time.

    Args:
        db: Database session
        day: Calendar date to query

    Returns:
        List of ScheduledRideModel ordered by departure_time ascending
    """
    next_day = day + timedelta(days=1)
    return db.query(models.ScheduledRideModel).filter(
        models.ScheduledRideModel.date >= day,
        models.ScheduledRideModel.date < next_day,
    ).order_by(
        models.ScheduledRideModel.departure_time.asc(),
        models.ScheduledRideModel.created_at.asc(),
    ).all()


def update_ride(
    db: Session,
    ride_id: str,
    changes: Dict[str, Any],
) -> Optional[models.ScheduledRideModel]:
    """
    Apply a partial update to a ride (operator override path, last write wins).

    Args:
        db: Database session
        ride_id: Ride ID
        changes: Column -> value mapping, already validated

    Returns:
        Updated ScheduledRideModel or None if not found
    """
    db_ride = get_ride(db, ride_id)
    if not db_ride:
        return None

    for key, value in changes.items():
        setattr(db_ride, key, value)
    db_ride.updated_at = utcnow()

    db.commit()
    db.refresh(db_ride)
    return db_ride


def record_location(
    db: Session,
    ride_id: str,
    lat: float,
    lng: float,
    timestamp: datetime,
) -> bool:
    """
    Store the ride's current location unless a newer sample is already stored.

    The check and the write are a single UPDATE statement, so a slower
    concurrent request can never regress the stored position.

    Returns:
        True if the location was written, False if the stored sample is newer
        (or the ride no longer exists)
    """
    ride_table = models.ScheduledRideModel
    result = db.execute(
        update(ride_table)
        .where(ride_table.id == ride_id)
        .where(or_(
            ride_table.current_location_at.is_(None),
            ride_table.current_location_at <= timestamp,
        ))
        .values(
            current_lat=lat,
            current_lng=lng,
            current_location_at=timestamp,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def transition_status(
    db: Session,
    ride_id: str,
    expected_status: str,
    new_status: str,
) -> bool:
    """
    Compare-and-set the ride status.

    Only succeeds when the stored status still equals ``expected_status``,
    so a geofence transition fires at most once under concurrent samples.

    Returns:
        True if this call performed the transition
    """
    ride_table = models.ScheduledRideModel
    result = db.execute(
        update(ride_table)
        .where(ride_table.id == ride_id)
        .where(ride_table.status == expected_status)
        .values(status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def delete_ride(db: Session, ride_id: str) -> bool:
    """
    Delete a scheduled ride.

    Returns:
        True if deleted, False if not found
    """
    db_ride = get_ride(db, ride_id)
    if not db_ride:
        return False

    db.delete(db_ride)
    db.commit()

    logger.info(f"Deleted scheduled ride {ride_id}")
    return True
