import pytest

from conftest import day
from models import FuelEntry, Tire, TireStatus, Trip, TripStatus
from services.exceptions import DuplicateKeyError, InvalidStateError, InvalidInputError, NotFoundError
from services.fuel_service import FuelService
from services.tire_service import normalize_assignment, release_tires
from services.trip_lifecycle import TripService


@pytest.fixture
def running_trip(db, trip):
    return TripService.start_trip(db, trip.id, fuel_start=300)


class TestFuelEntries:

    def test_create_on_running_trip(self, db, running_trip, driver):
        entry = FuelService.create_entry(db, running_trip.id, 120.5, "INV-001", actor=driver)
        assert entry.trip_id == running_trip.id
        assert FuelService.list_trip_entries(db, running_trip.id) == [entry]

    def test_todo_trip_rejected(self, db, trip):
        with pytest.raises(InvalidStateError):
            FuelService.create_entry(db, trip.id, 50, "INV-002")

    def test_missing_trip(self, db):
        with pytest.raises(NotFoundError):
            FuelService.create_entry(db, 999, 50, "INV-003")

    def test_invoice_serial_unique_across_trips(self, db, running_trip, truck, trailer, other_driver):
        FuelService.create_entry(db, running_trip.id, 80, "INV-010")

        other_trip = Trip(
            truck_id=truck.id, trailer_id=trailer.id, driver_id=other_driver.id,
            start_location="Rabat", end_location="Agadir", start_date=day(20), end_date=day(22),
            status=TripStatus.IN_PROGRESS,
        )
        db.add(other_trip)
        db.commit()
        with pytest.raises(DuplicateKeyError):
            FuelService.create_entry(db, other_trip.id, 10, "INV-010")
        assert db.query(FuelEntry).count() == 1

    def test_update_to_taken_serial(self, db, running_trip):
        FuelService.create_entry(db, running_trip.id, 80, "INV-020")
        second = FuelService.create_entry(db, running_trip.id, 40, "INV-021")
        with pytest.raises(DuplicateKeyError):
            FuelService.update_entry(db, second.id, {"invoice_serial": "INV-020"})

    def test_padded_serial_is_the_same_invoice(self, db, running_trip):
        FuelService.create_entry(db, running_trip.id, 80, "INV-025")
        second = FuelService.create_entry(db, running_trip.id, 40, " INV-026 ")
        assert second.invoice_serial == "INV-026"
        with pytest.raises(DuplicateKeyError):
            FuelService.update_entry(db, second.id, {"invoice_serial": "INV-025 "})
        with pytest.raises(DuplicateKeyError):
            FuelService.create_entry(db, running_trip.id, 10, "INV-025\t")

    def test_blank_serial_rejected(self, db, running_trip):
        entry = FuelService.create_entry(db, running_trip.id, 80, "INV-027")
        with pytest.raises(InvalidInputError):
            FuelService.update_entry(db, entry.id, {"invoice_serial": "   "})

    def test_frozen_after_completion(self, db, running_trip):
        entry = FuelService.create_entry(db, running_trip.id, 80, "INV-030")
        TripService.complete_trip(db, running_trip.id, fuel_end=100, km_end=10200)
        with pytest.raises(InvalidStateError):
            FuelService.update_entry(db, entry.id, {"amount": 90})
        with pytest.raises(InvalidStateError):
            FuelService.delete_entry(db, entry.id)

    def test_delete(self, db, running_trip):
        entry = FuelService.create_entry(db, running_trip.id, 80, "INV-040")
        FuelService.delete_entry(db, entry.id)
        assert db.query(FuelEntry).count() == 0
        assert TripService.get_trip(db, running_trip.id).status == TripStatus.IN_PROGRESS


class TestTireAssignment:

    def test_assigned_stock_tire_becomes_mounted(self):
        tire = normalize_assignment(Tire(truck_id=1, status=TireStatus.STOCK))
        assert tire.status == TireStatus.MOUNTED

    @pytest.mark.parametrize("status", [TireStatus.USED, TireStatus.NEEDS_REPLACEMENT])
    def test_assigned_keeps_compatible_status(self, status):
        assert normalize_assignment(Tire(trailer_id=1, status=status)).status == status

    def test_both_hosts_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_assignment(Tire(truck_id=1, trailer_id=2, status=TireStatus.MOUNTED))

    @pytest.mark.parametrize("status", [TireStatus.MOUNTED, TireStatus.USED])
    def test_unassigned_cannot_be_mounted_or_used(self, status):
        with pytest.raises(InvalidInputError):
            normalize_assignment(Tire(status=status))

    def test_unassigned_stock_is_fine(self):
        assert normalize_assignment(Tire(status=TireStatus.STOCK)).status == TireStatus.STOCK

    def test_release_tires_returns_them_to_stock(self, db, truck, truck_tires):
        truck_tires[1].status = TireStatus.NEEDS_REPLACEMENT
        db.commit()

        assert release_tires(db, Tire.truck_id, truck.id) == 2
        db.commit()
        db.expire_all()
        statuses = [db.get(Tire, t.id).status for t in truck_tires]
        assert statuses == [TireStatus.STOCK, TireStatus.NEEDS_REPLACEMENT]
        assert all(db.get(Tire, t.id).truck_id is None for t in truck_tires)
