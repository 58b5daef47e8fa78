"""
Tests for ride CRUD, including the guarded location and status writes.
"""

from datetime import date, datetime, timedelta, timezone

from backend.db import crud, schemas
from backend.models import utcnow


T0 = datetime(2026, 10, 18, 8, 0, 0)


class TestRideQueries:

    def test_get_ride_missing_returns_none(self, db_session):
        assert crud.get_ride(db_session, "does-not-exist") is None

    def test_list_rides_for_date_excludes_neighbouring_days(self, db_session, make_ride):
        day = date(2026, 10, 18)
        make_ride(day=day - timedelta(days=1), departure_time="09:00")
        make_ride(day=day + timedelta(days=1), departure_time="07:00")
        wanted = make_ride(day=day, departure_time="10:00")

        rides = crud.list_rides_for_date(db_session, day)

        assert [r.id for r in rides] == [wanted.id]

    def test_list_rides_for_date_sorted_by_departure_time(self, db_session, make_ride):
        day = date(2026, 10, 18)
        late = make_ride(day=day, departure_time="17:45")
        early = make_ride(day=day, departure_time="06:30")
        midday = make_ride(day=day, departure_time="12:00")

        rides = crud.list_rides_for_date(db_session, day)

        assert [r.id for r in rides] == [early.id, midday.id, late.id]

    def test_get_buses_and_routes_by_ids(self, db_session, bus, route):
        assert crud.get_buses_by_ids(db_session, [bus.id, "missing"]) == {bus.id: bus}
        assert crud.get_routes_by_ids(db_session, [route.id, route.id]) == {route.id: route}
        assert crud.get_routes_by_ids(db_session, []) == {}


class TestRecordLocation:

    def test_first_sample_is_written(self, db_session, ride):
        assert crud.record_location(db_session, ride.id, 12.97, 77.59, T0) is True

        db_session.refresh(ride)
        assert ride.current_location == {"lat": 12.97, "lng": 77.59, "timestamp": T0}

    def test_newer_sample_overwrites(self, db_session, ride):
        crud.record_location(db_session, ride.id, 12.97, 77.59, T0)

        assert crud.record_location(db_session, ride.id, 12.98, 77.60, T0 + timedelta(seconds=5)) is True

        db_session.refresh(ride)
        assert ride.current_lat == 12.98

    def test_older_sample_is_rejected(self, db_session, ride):
        crud.record_location(db_session, ride.id, 12.98, 77.60, T0 + timedelta(seconds=5))

        assert crud.record_location(db_session, ride.id, 12.97, 77.59, T0) is False

        db_session.refresh(ride)
        assert ride.current_lat == 12.98
        assert ride.current_location_at == T0 + timedelta(seconds=5)

    def test_equal_timestamp_is_accepted(self, db_session, ride):
        crud.record_location(db_session, ride.id, 12.97, 77.59, T0)

        assert crud.record_location(db_session, ride.id, 12.99, 77.61, T0) is True

    def test_missing_ride(self, db_session):
        assert crud.record_location(db_session, "does-not-exist", 0, 0, T0) is False


class TestTransitionStatus:

    def test_applies_when_expected_status_matches(self, db_session, ride):
        assert crud.transition_status(db_session, ride.id, "Scheduled", "In Progress") is True

        db_session.refresh(ride)
        assert ride.status == "In Progress"

    def test_second_identical_transition_is_refused(self, db_session, ride):
        assert crud.transition_status(db_session, ride.id, "Scheduled", "In Progress") is True
        assert crud.transition_status(db_session, ride.id, "Scheduled", "In Progress") is False

    def test_refused_after_operator_cancel(self, db_session, ride):
        crud.update_ride(db_session, ride.id, {"status": "Cancelled"})

        assert crud.transition_status(db_session, ride.id, "Scheduled", "In Progress") is False

        db_session.refresh(ride)
        assert ride.status == "Cancelled"


class TestUpdateAndDelete:

    def test_update_ride_sets_fields(self, db_session, ride):
        updated = crud.update_ride(db_session, ride.id, {"departure_time": "09:15", "date": date(2026, 10, 19)})

        assert updated.departure_time == "09:15"
        assert updated.date == date(2026, 10, 19)

    def test_update_missing_ride(self, db_session):
        assert crud.update_ride(db_session, "does-not-exist", {"status": "Cancelled"}) is None

    def test_delete_ride(self, db_session, ride):
        ride_id = ride.id

        assert crud.delete_ride(db_session, ride_id) is True
        assert crud.get_ride(db_session, ride_id) is None
        assert crud.delete_ride(db_session, ride_id) is False

    def test_delete_route_leaves_rides(self, db_session, ride, route):
        assert crud.delete_route(db_session, route.id) is True

        assert crud.get_ride(db_session, ride.id) is not None
        assert crud.get_route(db_session, ride.route_id) is None


class TestTimestamps:

    def test_utcnow_is_naive_utc(self):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        now = utcnow()

        assert now.tzinfo is None
        assert before <= now <= before + timedelta(seconds=5)

    def test_update_stamps_updated_at(self, db_session, ride):
        before = utcnow()

        updated = crud.update_ride(db_session, ride.id, {"status": "Cancelled"})

        assert updated.updated_at >= before

    def test_wire_timestamps_are_marked_utc(self):
        location = schemas.LocationResponse(lat=1.0, lng=2.0, timestamp=T0)

        assert location.model_dump(mode="json")["timestamp"] == "2026-10-18T08:00:00Z"
        assert location.model_dump()["timestamp"] == T0

    def test_aware_timestamps_are_converted(self):
        ist = timezone(timedelta(hours=5, minutes=30))

        assert schemas.format_utc(datetime(2026, 10, 18, 13, 30, tzinfo=ist)) == "2026-10-18T08:00:00Z"
