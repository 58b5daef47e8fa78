from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")

LOCATION_UPDATE_EVENT = "ride-location-update"
STATUS_UPDATE_EVENT = "ride-status-update"

ALL_RIDES_TOPIC = "rides"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (how timestamps are stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RideStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RideStatus.COMPLETED, RideStatus.CANCELLED)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class Unresolved:
    """Reference whose record could not be loaded; only the id is known."""
    id: str


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """Reference with its record loaded from the store."""
    record: T

    @property
    def id(self) -> str:
        return str(self.record.id)


# Populated bus/route reference. Consumers branch with isinstance().
Reference = Union[Unresolved, Resolved]


@dataclass(frozen=True)
class RideEvent:
    name: str
    ride_id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.name, "data": self.data}


@dataclass
class GeofenceDecision:
    from_status: RideStatus
    to_status: Optional[RideStatus] = None
    distance_m: Optional[float] = None
    skipped_reason: Optional[str] = None

    @property
    def transitioned(self) -> bool:
        return self.to_status is not None and self.to_status != self.from_status
