"""
Maintenance rules and records.

``km_at_maintenance`` is an additive delta: creating a record adds it to the
target's odometer (cascading to mounted tires for vehicles), raising it on
update adds only the positive difference, and lowering it or deleting the
record never rewinds the odometer.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
from models.maintenance import MaintenanceRule, MaintenanceRecord, MaintenanceTarget, IntervalType
from models.tire import Tire
from models.user import User
from services.exceptions import NotFoundError, InvalidInputError, DuplicateKeyError, ConflictError
from services.persistence import flush_or_duplicate
from services.odometer import apply_to_target
from services.targets import TargetRef, load_target, TIRE_HOST_COLUMNS
from utils.clock import utcnow, to_naive_utc
from utils.logger import DatabaseLogger
import logging

logger = logging.getLogger(__name__)

DUPLICATE_RULE = "A maintenance rule with this target, type, and value already exists."
DUPLICATE_RECORD = "A maintenance record for this target, rule, and date already exists."


class MaintenanceRuleService:

    @staticmethod
    def get_rule(db: Session, rule_id: int) -> MaintenanceRule:
        rule = db.query(MaintenanceRule).filter(MaintenanceRule.id == rule_id).first()
        if not rule:
            raise NotFoundError("Maintenance rule not found")
        return rule

    @staticmethod
    def list_rules(db: Session, target: Optional[MaintenanceTarget] = None) -> List[MaintenanceRule]:
        query = db.query(MaintenanceRule)
        if target:
            query = query.filter(MaintenanceRule.target == target)
        return query.order_by(MaintenanceRule.created_at.desc(), MaintenanceRule.id.desc()).all()

    @staticmethod
    def _ensure_unique(db: Session, target, interval_type, interval_value, exclude_id: Optional[int] = None):
        query = db.query(MaintenanceRule.id).filter(
            MaintenanceRule.target == target,
            MaintenanceRule.interval_type == interval_type,
            MaintenanceRule.interval_value == interval_value,
        )
        if exclude_id is not None:
            query = query.filter(MaintenanceRule.id != exclude_id)
        if query.first() is not None:
            raise DuplicateKeyError(DUPLICATE_RULE)

    @staticmethod
    def create_rule(
        db: Session,
        target: MaintenanceTarget,
        interval_type: IntervalType,
        interval_value: int,
        description: Optional[str] = None
    ) -> MaintenanceRule:
        MaintenanceRuleService._ensure_unique(db, target, interval_type, interval_value)
        rule = MaintenanceRule(
            target=target,
            interval_type=interval_type,
            interval_value=interval_value,
            description=description
        )
        db.add(rule)
        flush_or_duplicate(db, DUPLICATE_RULE)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def update_rule(db: Session, rule_id: int, fields: Dict[str, Any]) -> MaintenanceRule:
        rule = MaintenanceRuleService.get_rule(db, rule_id)
        target = fields.get("target") or rule.target
        interval_type = fields.get("interval_type") or rule.interval_type
        interval_value = fields.get("interval_value") or rule.interval_value
        MaintenanceRuleService._ensure_unique(db, target, interval_type, interval_value, exclude_id=rule.id)

        if target != rule.target and rule.records:
            raise ConflictError("Cannot change the target of a rule that already has records")

        rule.target = target
        rule.interval_type = interval_type
        rule.interval_value = interval_value
        if "description" in fields:
            rule.description = fields["description"]
        flush_or_duplicate(db, DUPLICATE_RULE)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def delete_rule(db: Session, rule_id: int) -> None:
        rule = MaintenanceRuleService.get_rule(db, rule_id)
        if rule.records:
            raise ConflictError("Maintenance rule is referenced by existing records")
        db.delete(rule)
        db.commit()


class MaintenanceRecordService:

    @staticmethod
    def get_record(db: Session, record_id: int, for_update: bool = False) -> MaintenanceRecord:
        query = db.query(MaintenanceRecord).filter(MaintenanceRecord.id == record_id)
        if for_update:
            # Postgres refuses FOR UPDATE across the outer join of an eager load
            query = query.with_for_update()
        else:
            query = query.options(joinedload(MaintenanceRecord.rule))
        record = query.first()
        if not record:
            raise NotFoundError("Maintenance record not found")
        return record

    @staticmethod
    def list_records(db: Session, target: Optional[TargetRef] = None) -> List[MaintenanceRecord]:
        query = db.query(MaintenanceRecord).options(joinedload(MaintenanceRecord.rule))
        if target:
            query = query.filter(
                MaintenanceRecord.target_type == target.kind,
                MaintenanceRecord.target_id == target.id
            )
        return query.order_by(MaintenanceRecord.created_at.desc(), MaintenanceRecord.id.desc()).all()

    @staticmethod
    def _check_rule(db: Session, rule_id: int, target: TargetRef) -> MaintenanceRule:
        rule = MaintenanceRuleService.get_rule(db, rule_id)
        if rule.target != target.kind:
            raise InvalidInputError(
                f"Rule applies to {rule.target.value} targets, not {target.kind.value}"
            )
        return rule

    @staticmethod
    def _ensure_unique(db: Session, target: TargetRef, rule_id: int, performed_at: datetime,
                       exclude_id: Optional[int] = None):
        query = db.query(MaintenanceRecord.id).filter(
            MaintenanceRecord.target_type == target.kind,
            MaintenanceRecord.target_id == target.id,
            MaintenanceRecord.rule_id == rule_id,
            MaintenanceRecord.performed_at == performed_at,
        )
        if exclude_id is not None:
            query = query.filter(MaintenanceRecord.id != exclude_id)
        if query.first() is not None:
            logger.warning(f"Duplicate maintenance record for {target}: rule {rule_id} at {performed_at}")
            raise DuplicateKeyError(DUPLICATE_RECORD)

    @staticmethod
    def _touch_target(target_row, performed_at: datetime):
        """Advance the target's last_maintenance date, never moving it backwards"""
        performed_on = performed_at.date()
        if target_row.last_maintenance is None or target_row.last_maintenance < performed_on:
            target_row.last_maintenance = performed_on

    @staticmethod
    def create_record(
        db: Session,
        target: TargetRef,
        rule_id: int,
        km_at_maintenance: Optional[int] = None,
        performed_at: Optional[datetime] = None,
        description: Optional[str] = None,
        actor: Optional[User] = None
    ) -> MaintenanceRecord:
        target_row = load_target(db, target, for_update=True)
        MaintenanceRecordService._check_rule(db, rule_id, target)
        performed_at = to_naive_utc(performed_at) or utcnow()
        MaintenanceRecordService._ensure_unique(db, target, rule_id, performed_at)

        record = MaintenanceRecord(
            target_type=target.kind,
            target_id=target.id,
            rule_id=rule_id,
            km_at_maintenance=km_at_maintenance,
            performed_at=performed_at,
            description=description
        )
        db.add(record)
        flush_or_duplicate(db, DUPLICATE_RECORD)

        apply_to_target(db, target, km_at_maintenance or 0)
        db.refresh(target_row)
        record.odometer_km = target_row.km
        MaintenanceRecordService._touch_target(target_row, performed_at)

        DatabaseLogger.log_activity(
            db, "maintenance_record.create", user_id=actor.id if actor else None,
            entity_type="maintenance_record", entity_id=record.id,
            description=f"{target.kind.value} {target.id}, +{km_at_maintenance or 0} km"
        )
        db.commit()
        db.refresh(record)

        logger.info(f"Maintenance record {record.id} logged for {target.kind.value} {target.id}")
        return record

    @staticmethod
    def update_record(
        db: Session,
        record_id: int,
        fields: Dict[str, Any],
        actor: Optional[User] = None
    ) -> MaintenanceRecord:
        """Edit a record; only an increase of km_at_maintenance reaches the odometer.

        When the record moves to another target, that target has received
        nothing from it yet, so the full value is applied there.
        """
        record = MaintenanceRecordService.get_record(db, record_id, for_update=True)
        old_target = TargetRef(record.target_type, record.target_id)

        target = TargetRef(
            fields.get("target_type") or record.target_type,
            fields.get("target_id") or record.target_id,
        )
        target_row = load_target(db, target, for_update=True)
        rule_id = fields.get("rule_id") or record.rule_id
        MaintenanceRecordService._check_rule(db, rule_id, target)
        performed_at = to_naive_utc(fields.get("performed_at")) or record.performed_at
        MaintenanceRecordService._ensure_unique(db, target, rule_id, performed_at, exclude_id=record.id)

        new_km = fields["km_at_maintenance"] if "km_at_maintenance" in fields else record.km_at_maintenance
        previous_km = (record.km_at_maintenance or 0) if target == old_target else 0
        delta = (new_km or 0) - previous_km

        record.target_type = target.kind
        record.target_id = target.id
        record.rule_id = rule_id
        record.performed_at = performed_at
        record.km_at_maintenance = new_km
        if "description" in fields:
            record.description = fields["description"]
        flush_or_duplicate(db, DUPLICATE_RECORD)

        if apply_to_target(db, target, delta):
            db.refresh(target_row)
            record.odometer_km = target_row.km
        MaintenanceRecordService._touch_target(target_row, performed_at)

        DatabaseLogger.log_activity(
            db, "maintenance_record.update", user_id=actor.id if actor else None,
            entity_type="maintenance_record", entity_id=record.id,
            description=f"km_at_maintenance={new_km}, applied {max(delta, 0)} km"
        )
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def delete_record(db: Session, record_id: int, actor: Optional[User] = None) -> None:
        """Remove a record; kilometers it added stay on the odometer"""
        record = MaintenanceRecordService.get_record(db, record_id, for_update=True)
        db.delete(record)
        DatabaseLogger.log_activity(
            db, "maintenance_record.delete", user_id=actor.id if actor else None,
            entity_type="maintenance_record", entity_id=record_id
        )
        db.commit()

    @staticmethod
    def delete_target_records(db: Session, target: TargetRef) -> int:
        """Drop a target's maintenance history in the caller's transaction.

        Records reference their target by kind and id only, so a deleted
        truck, trailer or tire must take its records with it before the id
        can be handed out again.
        """
        deleted = db.query(MaintenanceRecord).filter(
            MaintenanceRecord.target_type == target.kind,
            MaintenanceRecord.target_id == target.id
        ).delete(synchronize_session="fetch")
        if deleted:
            logger.info(f"Removed {deleted} maintenance record(s) of {target.kind.value} {target.id}")
        return deleted

    @staticmethod
    def records_for_vehicle(
        db: Session,
        truck_id: Optional[int] = None,
        trailer_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """A vehicle's own records plus, per mounted tire, that tire's records"""
        if (truck_id is None) == (trailer_id is None):
            raise InvalidInputError("Provide exactly one of 'truck' or 'trailer'")

        if truck_id is not None:
            vehicle = TargetRef(MaintenanceTarget.TRUCK, truck_id)
        else:
            vehicle = TargetRef(MaintenanceTarget.TRAILER, trailer_id)
        load_target(db, vehicle)

        vehicle_records = MaintenanceRecordService.list_records(db, vehicle)

        tires = db.query(Tire).filter(TIRE_HOST_COLUMNS[vehicle.kind] == vehicle.id).order_by(Tire.id).all()
        tire_records = [
            {
                "tire": tire,
                "maintenances": MaintenanceRecordService.list_records(
                    db, TargetRef(MaintenanceTarget.TIRE, tire.id)
                ),
            }
            for tire in tires
        ]
        return {"vehicle_records": vehicle_records, "tire_records": tire_records}

    @staticmethod
    def due_status(db: Session, target: TargetRef, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Next due point for every rule of the target's class, from its latest record"""
        target_row = load_target(db, target)
        now = now or utcnow()
        results = []

        for rule in MaintenanceRuleService.list_rules(db, target.kind):
            last = db.query(MaintenanceRecord).filter(
                MaintenanceRecord.target_type == target.kind,
                MaintenanceRecord.target_id == target.id,
                MaintenanceRecord.rule_id == rule.id,
            ).order_by(MaintenanceRecord.performed_at.desc()).first()

            entry = {
                "rule_id": rule.id,
                "description": rule.description,
                "interval_type": rule.interval_type,
                "interval_value": rule.interval_value,
                "last_performed_at": last.performed_at if last else None,
                "next_due_km": None,
                "next_due_date": None,
            }
            if rule.interval_type == IntervalType.KM:
                baseline = last.odometer_km if last and last.odometer_km is not None else 0
                entry["next_due_km"] = baseline + rule.interval_value
                entry["due"] = target_row.km >= entry["next_due_km"]
            else:
                baseline = last.performed_at if last else target_row.created_at
                entry["next_due_date"] = baseline + timedelta(days=rule.interval_value)
                entry["due"] = now >= entry["next_due_date"]
            results.append(entry)

        return results
