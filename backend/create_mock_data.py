from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from backend.db import crud, schemas

# Sample path used by the GPS simulator (Bangalore).
DEMO_DEPARTURE = (12.9716, 77.5946)
DEMO_ARRIVAL = (13.0020, 77.6200)


def seed_demo_data(db: Session, day: Optional[date] = None) -> dict:
    """Create one route, one bus and three rides on ``day`` (default today)."""
    day = day or date.today()

    route = crud.create_route(db, schemas.RouteCreate(
        route_number="R-101",
        route_name="Majestic to Hebbal",
        departure_location="Majestic",
        departure_lat=DEMO_DEPARTURE[0],
        departure_lng=DEMO_DEPARTURE[1],
        arrival_location="Hebbal",
        arrival_lat=DEMO_ARRIVAL[0],
        arrival_lng=DEMO_ARRIVAL[1],
        ride_time="45 mins",
    ))
    bus = crud.create_bus(db, schemas.BusCreate(bus_number="KA-01-F-1234", bus_type="AC", driver_name="Demo Driver"))

    ride_ids = []
    for departure_time in ("08:00", "12:30", "17:45"):
        ride = crud.create_ride(db, schemas.ScheduledRideCreate(
            bus_id=bus.id,
            route_id=route.id,
            date=day,
            departure_time=departure_time,
        ))
        ride_ids.append(ride.id)

    return {"route_id": route.id, "bus_id": bus.id, "ride_ids": ride_ids, "date": day.isoformat()}
