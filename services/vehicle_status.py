"""
Single write path for truck and trailer operational status.

The status column is `on_trip` exactly while one in-progress trip holds the
vehicle. Trip transitions pass ``trip_transition=True``; admin edits go through
the same function and are refused when they would break that rule.
"""
from typing import Union
from sqlalchemy.orm import Session
from models.truck import Truck, VehicleStatus
from models.trailer import Trailer
from models.trip import Trip, TripStatus
from services.exceptions import InvalidStateError
import logging

logger = logging.getLogger(__name__)

Vehicle = Union[Truck, Trailer]


def has_in_progress_trip(db: Session, vehicle: Vehicle) -> bool:
    column = Trip.truck_id if isinstance(vehicle, Truck) else Trip.trailer_id
    return db.query(Trip.id).filter(
        column == vehicle.id,
        Trip.status == TripStatus.IN_PROGRESS
    ).first() is not None


def set_vehicle_status(
    db: Session,
    vehicle: Vehicle,
    new_status: VehicleStatus,
    trip_transition: bool = False
) -> Vehicle:
    """Change a vehicle's status, enforcing the on_trip ownership rule for admin edits"""
    if not trip_transition:
        if new_status == VehicleStatus.ON_TRIP:
            raise InvalidStateError("Status 'on_trip' is set by starting a trip")
        if vehicle.status == VehicleStatus.ON_TRIP and has_in_progress_trip(db, vehicle):
            raise InvalidStateError(
                f"{type(vehicle).__name__} {vehicle.plate_number} is on an in-progress trip"
            )

    if vehicle.status != new_status:
        logger.info(
            f"{type(vehicle).__name__} {vehicle.id} status {vehicle.status.value} -> {new_status.value}"
        )
        vehicle.status = new_status
    return vehicle
