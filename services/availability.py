"""
Resource availability checks for trip booking.

A trip that is not completed occupies its truck, trailer and driver over the
closed interval [start_date, end_date]; touching endpoints count as overlap.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from models.user import User, UserRole
from models.truck import Truck, VehicleStatus
from models.trailer import Trailer
from models.trip import Trip, ACTIVE_TRIP_STATUSES
from services.exceptions import ConflictError, NotFoundError, InvalidRoleError, FleetError
import logging

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Closed-interval overlap test, symmetric in its two intervals"""
    return a_start <= b_end and a_end >= b_start


def has_overlapping_trip(
    db: Session,
    column,
    resource_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_trip_id: Optional[int] = None
) -> bool:
    """True when a non-completed trip on this resource overlaps the window"""
    query = db.query(Trip.id).filter(
        column == resource_id,
        Trip.status.in_(ACTIVE_TRIP_STATUSES),
        Trip.start_date <= end_date,
        Trip.end_date >= start_date,
    )
    if exclude_trip_id is not None:
        query = query.filter(Trip.id != exclude_trip_id)
    return query.first() is not None


def _lock(db: Session, model, resource_id: int):
    # FOR UPDATE serializes concurrent bookings of the same resource (no-op on SQLite)
    return db.query(model).filter(model.id == resource_id).with_for_update().first()


def _check_truck(db, truck_id, start_date, end_date, exclude_trip_id):
    truck = _lock(db, Truck, truck_id)
    if not truck:
        raise NotFoundError("Truck not found")
    if truck.status != VehicleStatus.AVAILABLE:
        raise ConflictError("Truck not available")
    if has_overlapping_trip(db, Trip.truck_id, truck_id, start_date, end_date, exclude_trip_id):
        raise ConflictError("Truck already has a trip in this period")


def _check_driver(db, driver_id, start_date, end_date, exclude_trip_id):
    driver = _lock(db, User, driver_id)
    if not driver:
        raise NotFoundError("Driver not found")
    if driver.role != UserRole.DRIVER:
        raise InvalidRoleError("User is not a driver")
    if has_overlapping_trip(db, Trip.driver_id, driver_id, start_date, end_date, exclude_trip_id):
        raise ConflictError("Driver already has a trip in this period")


def _check_trailer(db, trailer_id, start_date, end_date, exclude_trip_id):
    trailer = _lock(db, Trailer, trailer_id)
    if not trailer:
        raise NotFoundError("Trailer not found")
    if trailer.status != VehicleStatus.AVAILABLE:
        raise ConflictError("Trailer not available")
    if has_overlapping_trip(db, Trip.trailer_id, trailer_id, start_date, end_date, exclude_trip_id):
        raise ConflictError("Trailer already has a trip in this period")


def check_availability(
    db: Session,
    truck_id: int,
    trailer_id: int,
    driver_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_trip_id: Optional[int] = None
) -> None:
    """Raise on the first failing check, in truck, driver, trailer order.

    Must run in the same transaction as the trip insert it guards.
    """
    _check_truck(db, truck_id, start_date, end_date, exclude_trip_id)
    _check_driver(db, driver_id, start_date, end_date, exclude_trip_id)
    _check_trailer(db, trailer_id, start_date, end_date, exclude_trip_id)


def find_conflicts(
    db: Session,
    truck_id: int,
    trailer_id: int,
    driver_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_trip_id: Optional[int] = None
) -> List[str]:
    """Run every check and collect all failure messages instead of stopping at the first"""
    conflicts = []
    checks = (
        (_check_truck, truck_id),
        (_check_driver, driver_id),
        (_check_trailer, trailer_id),
    )
    for check, resource_id in checks:
        try:
            check(db, resource_id, start_date, end_date, exclude_trip_id)
        except FleetError as e:
            conflicts.append(e.message)
    if conflicts:
        logger.info(f"Availability conflicts for {start_date} - {end_date}: {conflicts}")
    return conflicts
