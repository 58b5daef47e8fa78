"""
Geofence evaluator for scheduled rides.

Decides whether a GPS sample moves a ride one step along
Scheduled -> In Progress -> Completed. Cancelled is never produced here;
it belongs to the operator override path.
"""

import logging
from typing import Any, Optional

from backend.config import config
from backend.models import (
    Coordinates,
    GeofenceDecision,
    Reference,
    Resolved,
    RideStatus,
)
from backend.services.geo import haversine_m, is_within_radius

logger = logging.getLogger(__name__)


def evaluate(
    status: RideStatus,
    route_ref: Optional[Reference],
    sample: Coordinates,
    radius_m: Optional[float] = None,
) -> GeofenceDecision:
    """
    Evaluate one GPS sample against the ride's route endpoints.

    Args:
        status: Ride status as loaded, before any transition
        route_ref: Populated route reference (or None when unknown)
        sample: The new GPS point
        radius_m: Geofence radius; defaults to the route override or config

    Returns:
        GeofenceDecision with at most one forward transition
    """
    status = RideStatus(status)
    decision = GeofenceDecision(from_status=status)

    if status.is_terminal:
        decision.skipped_reason = "terminal_status"
        return decision

    if not isinstance(route_ref, Resolved):
        decision.skipped_reason = "route_unresolved"
        return decision

    route: Any = route_ref.record
    radius = radius_m if radius_m is not None else config.resolve_geofence_radius(route)

    if status == RideStatus.SCHEDULED:
        target, next_status = route.departure_coordinates, RideStatus.IN_PROGRESS
    else:
        target, next_status = route.arrival_coordinates, RideStatus.COMPLETED

    decision.distance_m = haversine_m(sample, target)
    if is_within_radius(sample, target, radius):
        decision.to_status = next_status
        logger.debug(
            f"Geofence hit: {status.value} -> {next_status.value} "
            f"({decision.distance_m:.1f} m < {radius} m)"
        )
    return decision
