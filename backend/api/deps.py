"""
Shared API dependencies.

Authentication happens upstream: the gateway verifies the caller and
forwards its identity in ``X-User-Id`` and its role in ``X-User-Role``.
This module only checks the role against what an endpoint allows.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Header, Request

from backend.config import config
from backend.exceptions import NotAuthenticated, PermissionDenied
from backend.websocket import broadcaster
from backend.services.ride_tracking import RideTrackingService, ride_tracking_service

ROLE_PLANNER = "planner"
ROLE_OPERATOR = "operator"


@dataclass(frozen=True)
class Caller:
    user_id: Optional[str]
    role: Optional[str]


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    role = x_user_role.strip().lower() if x_user_role else None
    return Caller(user_id=x_user_id, role=role or None)


def require_role(*roles: str) -> Callable[..., Caller]:
    """Dependency factory: 401 without a role, 403 with the wrong one."""
    allowed = {role.lower() for role in roles}

    def dependency(x_user_id: Optional[str] = Header(default=None),
                   x_user_role: Optional[str] = Header(default=None)) -> Caller:
        caller = get_caller(x_user_id, x_user_role)
        if not config.AUTH_ENFORCED:
            return caller
        if caller.role is None:
            raise NotAuthenticated("Authentication required")
        if caller.role not in allowed:
            raise PermissionDenied(f"{' or '.join(sorted(allowed)).capitalize()} access required")
        return caller

    return dependency


def get_ride_tracking_service() -> RideTrackingService:
    return ride_tracking_service


def get_event_publisher(request: Request):
    """Redis relay when one is running, otherwise the in-process broadcaster."""
    return getattr(request.app.state, "event_publisher", None) or broadcaster
