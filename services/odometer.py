"""
Odometer propagation for vehicles and their mounted tires.

Increments are issued as SQL-side ``km = km + delta`` updates in the caller's
session and never committed here, so a vehicle and its tires always move
together inside the caller's transaction.
"""
import math
from sqlalchemy.orm import Session
from models.maintenance import MaintenanceTarget
from models.truck import Truck
from models.tire import Tire
from services.exceptions import InvalidInputError, NotFoundError
from services.targets import TargetRef, TIRE_HOST_COLUMNS
import logging

logger = logging.getLogger(__name__)


def _require_finite(distance) -> int:
    if distance is None or isinstance(distance, bool):
        raise InvalidInputError("Distance must be a number")
    try:
        value = float(distance)
    except (TypeError, ValueError):
        raise InvalidInputError("Distance must be a number")
    if not math.isfinite(value):
        raise InvalidInputError("Distance must be a finite number")
    return int(round(value))


def _increment(db: Session, target: TargetRef, delta: int) -> int:
    """Increment the target row and, for vehicles, every tire mounted on it.

    Returns the number of tires updated.
    """
    model = target.model
    updated = db.query(model).filter(model.id == target.id).update(
        {model.km: model.km + delta}, synchronize_session="fetch"
    )
    if not updated:
        raise NotFoundError(f"{target.label} not found")

    if not target.has_tires:
        return 0
    host_column = TIRE_HOST_COLUMNS[target.kind]
    return db.query(Tire).filter(host_column == target.id).update(
        {Tire.km: Tire.km + delta}, synchronize_session="fetch"
    )


def apply_to_truck(db: Session, truck_id: int, distance) -> Truck:
    """Add a completed trip's distance to a truck and its tires.

    Applied unconditionally, zero included; negative distances are rejected.
    """
    delta = _require_finite(distance)
    if delta < 0:
        raise InvalidInputError("Distance cannot be negative")

    tires = _increment(db, TargetRef(MaintenanceTarget.TRUCK, truck_id), delta)
    truck = db.query(Truck).filter(Truck.id == truck_id).first()
    logger.info(f"Truck {truck_id} odometer +{delta} km (now {truck.km}), {tires} tire(s) updated")
    return truck


def apply_to_target(db: Session, target: TargetRef, delta) -> bool:
    """Add a positive km delta to a truck, trailer or tire.

    Vehicles cascade the delta to their mounted tires; a tire target only
    moves that tire. Non-positive deltas are a no-op and return False.
    """
    delta = _require_finite(delta)
    if delta <= 0:
        return False

    tires = _increment(db, target, delta)
    logger.info(f"{target.label} {target.id} odometer +{delta} km, {tires} tire(s) updated")
    return True
