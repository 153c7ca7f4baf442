"""
Booking conflicts: closed-interval overlap, per-resource double-booking,
and the order in which checks fail.
"""
import pytest

from conftest import day
from models import TripStatus, VehicleStatus, Truck, Trailer
from services.availability import intervals_overlap, check_availability, find_conflicts
from services.exceptions import ConflictError, NotFoundError, InvalidRoleError


class TestIntervalsOverlap:

    @pytest.mark.parametrize("a,b,expected", [
        ((10, 15), (12, 13), True),
        ((10, 15), (10, 15), True),
        ((10, 15), (5, 10), True),
        ((10, 15), (15, 20), True),
        ((10, 15), (16, 20), False),
        ((10, 15), (1, 9), False),
    ])
    def test_symmetric(self, a, b, expected):
        a_start, a_end = day(a[0]), day(a[1])
        b_start, b_end = day(b[0]), day(b[1])
        assert intervals_overlap(a_start, a_end, b_start, b_end) is expected
        assert intervals_overlap(b_start, b_end, a_start, a_end) is expected

    def test_reflexive(self):
        assert intervals_overlap(day(3), day(4), day(3), day(4))
        assert intervals_overlap(day(3), day(3), day(3), day(3))


class TestCheckAvailability:

    @pytest.mark.parametrize("window", [(12, 13), (10, 15), (5, 10)])
    def test_active_trip_blocks_overlapping_windows(self, db, trip, truck, trailer, driver, window):
        with pytest.raises(ConflictError):
            check_availability(db, truck.id, trailer.id, driver.id, day(window[0]), day(window[1]))

    def test_disjoint_window_is_free(self, db, trip, truck, trailer, driver):
        check_availability(db, truck.id, trailer.id, driver.id, day(16), day(20))

    def test_completed_trip_never_blocks(self, db, trip, truck, trailer, driver):
        trip.status = TripStatus.COMPLETED
        db.commit()
        check_availability(db, truck.id, trailer.id, driver.id, day(12), day(13))

    def test_excluding_the_trip_itself(self, db, trip, truck, trailer, driver):
        check_availability(db, truck.id, trailer.id, driver.id, day(11), day(14), exclude_trip_id=trip.id)

    def test_truck_checked_first(self, db, trip, truck, trailer, driver):
        with pytest.raises(ConflictError, match="Truck already has a trip"):
            check_availability(db, truck.id, trailer.id, driver.id, day(12), day(13))

    def test_driver_conflict_with_other_vehicles(self, db, trip, driver):
        truck2 = Truck(plate_number="TR-101", km=0)
        trailer2 = Trailer(plate_number="TL-201", km=0)
        db.add_all([truck2, trailer2])
        db.commit()
        with pytest.raises(ConflictError, match="Driver already has a trip"):
            check_availability(db, truck2.id, trailer2.id, driver.id, day(12), day(13))

    def test_trailer_conflict_with_other_truck_and_driver(self, db, trip, other_driver):
        truck2 = Truck(plate_number="TR-101", km=0)
        db.add(truck2)
        db.commit()
        with pytest.raises(ConflictError, match="Trailer already has a trip"):
            check_availability(db, truck2.id, trip.trailer_id, other_driver.id, day(12), day(13))

    def test_unavailable_truck(self, db, truck, trailer, driver):
        truck.status = VehicleStatus.MAINTENANCE
        db.commit()
        with pytest.raises(ConflictError, match="Truck not available"):
            check_availability(db, truck.id, trailer.id, driver.id, day(1), day(2))

    def test_missing_truck(self, db, trailer, driver):
        with pytest.raises(NotFoundError, match="Truck not found"):
            check_availability(db, 999, trailer.id, driver.id, day(1), day(2))

    def test_missing_driver(self, db, truck, trailer):
        with pytest.raises(NotFoundError, match="Driver not found"):
            check_availability(db, truck.id, trailer.id, 999, day(1), day(2))

    def test_admin_is_not_a_driver(self, db, truck, trailer, admin):
        with pytest.raises(InvalidRoleError):
            check_availability(db, truck.id, trailer.id, admin.id, day(1), day(2))

    def test_missing_trailer(self, db, truck, driver):
        with pytest.raises(NotFoundError, match="Trailer not found"):
            check_availability(db, truck.id, 999, driver.id, day(1), day(2))


class TestFindConflicts:

    def test_reports_every_failing_resource(self, db, trip, truck, trailer, driver):
        conflicts = find_conflicts(db, truck.id, trailer.id, driver.id, day(12), day(13))
        assert conflicts == [
            "Truck already has a trip in this period",
            "Driver already has a trip in this period",
            "Trailer already has a trip in this period",
        ]

    def test_empty_when_free(self, db, trip, truck, trailer, driver):
        assert find_conflicts(db, truck.id, trailer.id, driver.id, day(20), day(22)) == []
