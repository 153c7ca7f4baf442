"""
Maintenance rules and records, including how km_at_maintenance feeds the
target odometer.
"""
from datetime import datetime, date

import pytest

from conftest import day
from models import Truck, Trailer, Tire, MaintenanceTarget, IntervalType, MaintenanceRecord
from services.exceptions import DuplicateKeyError, InvalidInputError, NotFoundError, ConflictError
from services.maintenance_service import MaintenanceRuleService, MaintenanceRecordService
from services.targets import TargetRef


def _km(db, model, obj_id):
    db.expire_all()
    return db.query(model).filter(model.id == obj_id).first().km


@pytest.fixture
def truck_rule(db):
    return MaintenanceRuleService.create_rule(db, MaintenanceTarget.TRUCK, IntervalType.KM, 20000, "Oil change")


@pytest.fixture
def tire_rule(db):
    return MaintenanceRuleService.create_rule(db, MaintenanceTarget.TIRE, IntervalType.DAYS, 90, "Rotation")


class TestRules:

    def test_duplicate_rule(self, db, truck_rule):
        with pytest.raises(DuplicateKeyError):
            MaintenanceRuleService.create_rule(db, MaintenanceTarget.TRUCK, IntervalType.KM, 20000)

    def test_same_interval_for_other_target_is_fine(self, db, truck_rule):
        rule = MaintenanceRuleService.create_rule(db, MaintenanceTarget.TRAILER, IntervalType.KM, 20000)
        assert rule.id != truck_rule.id

    def test_update_into_duplicate(self, db, truck_rule):
        other = MaintenanceRuleService.create_rule(db, MaintenanceTarget.TRUCK, IntervalType.KM, 30000)
        with pytest.raises(DuplicateKeyError):
            MaintenanceRuleService.update_rule(db, other.id, {"interval_value": 20000})

    def test_rule_in_use_cannot_be_deleted(self, db, truck, truck_rule):
        MaintenanceRecordService.create_record(db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id)
        with pytest.raises(ConflictError):
            MaintenanceRuleService.delete_rule(db, truck_rule.id)

    def test_list_by_target(self, db, truck_rule, tire_rule):
        assert [r.id for r in MaintenanceRuleService.list_rules(db, MaintenanceTarget.TIRE)] == [tire_rule.id]


class TestCreateRecord:

    def test_adds_km_to_truck_and_tires(self, db, truck, truck_tires, truck_rule):
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id,
            km_at_maintenance=100, performed_at=day(2)
        )
        assert _km(db, Truck, truck.id) == 10100
        assert _km(db, Tire, truck_tires[0].id) == 2100
        assert record.odometer_km == 10100

    def test_updates_last_maintenance(self, db, truck, truck_rule):
        MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, performed_at=day(2)
        )
        db.expire_all()
        assert db.get(Truck, truck.id).last_maintenance == date(2030, 3, 2)

    def test_trailer_mileage(self, db, trailer, trailer_tire):
        rule = MaintenanceRuleService.create_rule(db, MaintenanceTarget.TRAILER, IntervalType.KM, 50000)
        MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRAILER, trailer.id), rule.id, km_at_maintenance=70
        )
        assert _km(db, Trailer, trailer.id) == 5070
        assert _km(db, Tire, trailer_tire.id) == 1070

    def test_duplicate_record(self, db, truck, truck_rule):
        target = TargetRef(MaintenanceTarget.TRUCK, truck.id)
        MaintenanceRecordService.create_record(db, target, truck_rule.id, km_at_maintenance=10, performed_at=day(2))
        with pytest.raises(DuplicateKeyError):
            MaintenanceRecordService.create_record(db, target, truck_rule.id, km_at_maintenance=10, performed_at=day(2))
        assert _km(db, Truck, truck.id) == 10010
        assert db.query(MaintenanceRecord).count() == 1

    def test_rule_target_mismatch(self, db, truck, tire_rule):
        with pytest.raises(InvalidInputError):
            MaintenanceRecordService.create_record(db, TargetRef(MaintenanceTarget.TRUCK, truck.id), tire_rule.id)

    def test_missing_target(self, db, truck_rule):
        with pytest.raises(NotFoundError, match="Truck not found"):
            MaintenanceRecordService.create_record(db, TargetRef(MaintenanceTarget.TRUCK, 999), truck_rule.id)

    def test_missing_rule(self, db, truck):
        with pytest.raises(NotFoundError):
            MaintenanceRecordService.create_record(db, TargetRef(MaintenanceTarget.TRUCK, truck.id), 999)


class TestUpdateRecord:

    def test_raising_km_applies_difference(self, db, truck, truck_rule):
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, km_at_maintenance=100
        )
        MaintenanceRecordService.update_record(db, record.id, {"km_at_maintenance": 150})
        assert _km(db, Truck, truck.id) == 10150

    def test_lowering_km_changes_record_only(self, db, truck, truck_rule):
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, km_at_maintenance=150
        )
        updated = MaintenanceRecordService.update_record(db, record.id, {"km_at_maintenance": 50})
        assert updated.km_at_maintenance == 50
        assert _km(db, Truck, truck.id) == 10150

    def test_moving_to_another_target_applies_full_value(self, db, truck, truck_rule):
        second = Truck(plate_number="TR-900", km=0)
        db.add(second)
        db.commit()
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, km_at_maintenance=100
        )
        MaintenanceRecordService.update_record(db, record.id, {"target_id": second.id})
        assert _km(db, Truck, second.id) == 100
        assert _km(db, Truck, truck.id) == 10100

    def test_record_is_locked_before_the_delta_is_computed(self, db, truck, truck_rule, monkeypatch):
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, km_at_maintenance=100
        )
        locks = []
        original = MaintenanceRecordService.get_record

        def tracking_get_record(db, record_id, for_update=False):
            locks.append(for_update)
            return original(db, record_id, for_update=for_update)

        monkeypatch.setattr(MaintenanceRecordService, "get_record", staticmethod(tracking_get_record))
        MaintenanceRecordService.update_record(db, record.id, {"km_at_maintenance": 150})
        MaintenanceRecordService.update_record(db, record.id, {"km_at_maintenance": 200})

        assert locks == [True, True]
        assert _km(db, Truck, truck.id) == 10200

    def test_update_into_duplicate(self, db, truck, truck_rule):
        target = TargetRef(MaintenanceTarget.TRUCK, truck.id)
        MaintenanceRecordService.create_record(db, target, truck_rule.id, performed_at=day(2))
        second = MaintenanceRecordService.create_record(db, target, truck_rule.id, performed_at=day(3))
        with pytest.raises(DuplicateKeyError):
            MaintenanceRecordService.update_record(db, second.id, {"performed_at": day(2)})


class TestDeleteAndRead:

    def test_delete_keeps_mileage(self, db, truck, truck_rule):
        record = MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id, km_at_maintenance=100
        )
        MaintenanceRecordService.delete_record(db, record.id)
        assert db.query(MaintenanceRecord).count() == 0
        assert _km(db, Truck, truck.id) == 10100

    def test_records_for_vehicle_groups_tire_records(self, db, truck, truck_tires, truck_rule, tire_rule):
        MaintenanceRecordService.create_record(db, TargetRef(MaintenanceTarget.TRUCK, truck.id), truck_rule.id)
        MaintenanceRecordService.create_record(
            db, TargetRef(MaintenanceTarget.TIRE, truck_tires[1].id), tire_rule.id
        )

        result = MaintenanceRecordService.records_for_vehicle(db, truck_id=truck.id)
        assert len(result["vehicle_records"]) == 1
        assert [entry["tire"].id for entry in result["tire_records"]] == [t.id for t in truck_tires]
        assert [len(entry["maintenances"]) for entry in result["tire_records"]] == [0, 1]

    @pytest.mark.parametrize("kwargs", [{}, {"truck_id": 1, "trailer_id": 1}])
    def test_records_for_vehicle_needs_exactly_one(self, db, kwargs):
        with pytest.raises(InvalidInputError):
            MaintenanceRecordService.records_for_vehicle(db, **kwargs)


class TestDueStatus:

    def test_km_rule_due_after_interval(self, db, truck, truck_rule):
        target = TargetRef(MaintenanceTarget.TRUCK, truck.id)
        MaintenanceRecordService.create_record(db, target, truck_rule.id, performed_at=day(1))

        status = MaintenanceRecordService.due_status(db, target)
        assert status[0]["next_due_km"] == 30000
        assert status[0]["due"] is False

        truck = db.get(Truck, truck.id)
        truck.km = 30000
        db.commit()
        assert MaintenanceRecordService.due_status(db, target)[0]["due"] is True

    def test_days_rule(self, db, truck_tires, tire_rule):
        target = TargetRef(MaintenanceTarget.TIRE, truck_tires[0].id)
        MaintenanceRecordService.create_record(db, target, tire_rule.id, performed_at=day(1))

        status = MaintenanceRecordService.due_status(db, target, now=datetime(2030, 5, 1))
        assert status[0]["next_due_date"] == datetime(2030, 5, 30)
        assert status[0]["due"] is False
        assert MaintenanceRecordService.due_status(db, target, now=datetime(2030, 6, 1))[0]["due"] is True
