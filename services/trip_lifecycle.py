"""
Trip lifecycle: to-do -> in-progress -> completed.

Every transition is one transaction: rows are locked and validated first,
then all writes (trip, vehicle status, odometer, notification, audit entry)
are committed together. Nothing is written when a check fails.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
from models.user import User
from models.truck import Truck, VehicleStatus
from models.trailer import Trailer
from models.trip import Trip, TripStatus, TripType
from models.fuel_entry import FuelEntry
from models.maintenance import MaintenanceTarget
from services.availability import check_availability
from services.exceptions import NotFoundError, InvalidStateError, InvalidInputError, ConflictError
from services.notification_service import NotificationService
from services.odometer import apply_to_truck, apply_to_target
from services.targets import TargetRef
from services.vehicle_status import set_vehicle_status
from utils.clock import utcnow, to_naive_utc
from utils.logger import DatabaseLogger
from utils.pagination import paginate
import logging

logger = logging.getLogger(__name__)

# Fields a to-do trip may change through update_trip
UPDATABLE_FIELDS = {
    "truck_id", "trailer_id", "driver_id",
    "start_location", "end_location", "start_date", "end_date",
    "trip_type", "cargo_weight", "planned_fuel", "description", "notes",
}
RESOURCE_FIELDS = {"truck_id", "trailer_id", "driver_id", "start_date", "end_date"}


def _actor_id(actor: Optional[User]) -> Optional[int]:
    return actor.id if actor is not None else None


def _validate_window(start_date: datetime, end_date: datetime):
    if end_date <= start_date:
        raise InvalidInputError("End date must be after start date")


class TripService:

    @staticmethod
    def get_trip(db: Session, trip_id: int, for_update: bool = False) -> Trip:
        query = db.query(Trip).filter(Trip.id == trip_id)
        if for_update:
            query = query.with_for_update()
        trip = query.first()
        if not trip:
            raise NotFoundError("Trip not found")
        return trip

    @staticmethod
    def list_trips(
        db: Session,
        status: Optional[TripStatus] = None,
        trip_type: Optional[TripType] = None,
        search: Optional[str] = None,
        driver_id: Optional[int] = None,
        order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """Paginated trips, newest first by default.

        ``search`` matches start/end location or the driver's name.
        """
        query = db.query(Trip).options(
            joinedload(Trip.truck), joinedload(Trip.trailer), joinedload(Trip.driver)
        )
        if status:
            query = query.filter(Trip.status == status)
        if trip_type:
            query = query.filter(Trip.trip_type == trip_type)
        if driver_id is not None:
            query = query.filter(Trip.driver_id == driver_id)
        if search:
            pattern = f"%{search}%"
            matching_drivers = db.query(User.id).filter(User.name.ilike(pattern))
            query = query.filter(or_(
                Trip.start_location.ilike(pattern),
                Trip.end_location.ilike(pattern),
                Trip.driver_id.in_(matching_drivers),
            ))

        if order == "asc":
            query = query.order_by(Trip.created_at.asc(), Trip.id.asc())
        else:
            query = query.order_by(Trip.created_at.desc(), Trip.id.desc())

        return paginate(query, page, limit)

    @staticmethod
    def list_driver_trips(
        db: Session,
        driver_id: int,
        status: Optional[TripStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        if not db.query(User.id).filter(User.id == driver_id).first():
            raise NotFoundError("Driver not found")
        return TripService.list_trips(db, status=status, driver_id=driver_id, page=page, limit=limit)

    @staticmethod
    def create_trip(db: Session, data: Dict[str, Any], actor: Optional[User] = None) -> Trip:
        """Book a truck, trailer and driver for a window; the trip starts as to-do"""
        start_date = to_naive_utc(data["start_date"])
        end_date = to_naive_utc(data["end_date"])
        _validate_window(start_date, end_date)

        check_availability(
            db, data["truck_id"], data["trailer_id"], data["driver_id"], start_date, end_date
        )

        trip = Trip(**{k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None})
        trip.start_date = start_date
        trip.end_date = end_date
        trip.status = TripStatus.TODO
        db.add(trip)
        db.flush()

        NotificationService.notify_trip_assigned(db, trip)
        DatabaseLogger.log_activity(
            db, "trip.create", user_id=_actor_id(actor), entity_type="trip", entity_id=trip.id,
            description=f"{trip.start_location} -> {trip.end_location}"
        )
        db.commit()
        db.refresh(trip)

        logger.info(f"Trip {trip.id} created for truck {trip.truck_id}, driver {trip.driver_id}")
        return trip

    @staticmethod
    def update_trip(db: Session, trip_id: int, fields: Dict[str, Any], actor: Optional[User] = None) -> Trip:
        """Edit a trip that has not started yet"""
        trip = TripService.get_trip(db, trip_id, for_update=True)
        if trip.status != TripStatus.TODO:
            raise InvalidStateError("Only trips with status 'to-do' can be updated")

        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        for key in ("start_date", "end_date"):
            if changes.get(key) is not None:
                changes[key] = to_naive_utc(changes[key])

        start_date = changes.get("start_date") or trip.start_date
        end_date = changes.get("end_date") or trip.end_date
        _validate_window(start_date, end_date)

        if RESOURCE_FIELDS & changes.keys():
            check_availability(
                db,
                changes.get("truck_id", trip.truck_id),
                changes.get("trailer_id", trip.trailer_id),
                changes.get("driver_id", trip.driver_id),
                start_date,
                end_date,
                exclude_trip_id=trip.id,
            )

        for key, value in changes.items():
            setattr(trip, key, value)

        DatabaseLogger.log_activity(
            db, "trip.update", user_id=_actor_id(actor), entity_type="trip", entity_id=trip.id,
            description=", ".join(sorted(changes))
        )
        db.commit()
        db.refresh(trip)
        return trip

    @staticmethod
    def delete_trip(db: Session, trip_id: int, actor: Optional[User] = None) -> None:
        """Delete a to-do trip.

        Started trips hold their vehicles' on_trip status and completed trips
        have already moved odometers, so both are kept.
        """
        trip = TripService.get_trip(db, trip_id, for_update=True)
        if trip.status != TripStatus.TODO:
            raise InvalidStateError("Only trips with status 'to-do' can be deleted")

        db.delete(trip)
        DatabaseLogger.log_activity(
            db, "trip.delete", user_id=_actor_id(actor), entity_type="trip", entity_id=trip_id
        )
        db.commit()
        logger.info(f"Trip {trip_id} deleted")

    @staticmethod
    def start_trip(db: Session, trip_id: int, fuel_start: float, actor: Optional[User] = None) -> Trip:
        """to-do -> in-progress: snapshot the truck odometer and put both vehicles on trip"""
        trip = TripService.get_trip(db, trip_id, for_update=True)
        if trip.status != TripStatus.TODO:
            raise InvalidStateError("Only trips with status 'to-do' can be started")

        truck = db.query(Truck).filter(Truck.id == trip.truck_id).with_for_update().first()
        if not truck:
            raise NotFoundError("Truck not found")
        trailer = db.query(Trailer).filter(Trailer.id == trip.trailer_id).with_for_update().first()
        if not trailer:
            raise NotFoundError("Trailer not found")

        for vehicle in (truck, trailer):
            if vehicle.status == VehicleStatus.ON_TRIP:
                raise ConflictError(
                    f"{type(vehicle).__name__} {vehicle.plate_number} is already on another trip"
                )
            if vehicle.status != VehicleStatus.AVAILABLE:
                raise ConflictError(
                    f"{type(vehicle).__name__} {vehicle.plate_number} is not available ({vehicle.status.value})"
                )

        trip.status = TripStatus.IN_PROGRESS
        trip.fuel_start = fuel_start
        trip.km_start = truck.km
        set_vehicle_status(db, truck, VehicleStatus.ON_TRIP, trip_transition=True)
        set_vehicle_status(db, trailer, VehicleStatus.ON_TRIP, trip_transition=True)

        NotificationService.notify_trip_status(db, trip)
        DatabaseLogger.log_activity(
            db, "trip.start", user_id=_actor_id(actor), entity_type="trip", entity_id=trip.id,
            description=f"km_start={trip.km_start}, fuel_start={fuel_start}"
        )
        db.commit()
        db.refresh(trip)

        logger.info(f"Trip {trip.id} started at {trip.km_start} km")
        return trip

    @staticmethod
    def complete_trip(
        db: Session,
        trip_id: int,
        fuel_end: float,
        km_end: int,
        actual_end_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        actor: Optional[User] = None
    ) -> Trip:
        """in-progress -> completed: release vehicles and propagate the trip distance"""
        trip = TripService.get_trip(db, trip_id, for_update=True)
        if trip.status != TripStatus.IN_PROGRESS:
            raise InvalidStateError("Only trips with status 'in-progress' can be completed")

        km_start = trip.km_start or 0
        if km_end < km_start:
            raise InvalidInputError(f"kmEnd ({km_end}) cannot be lower than kmStart ({km_start})")
        distance = km_end - km_start

        truck = db.query(Truck).filter(Truck.id == trip.truck_id).with_for_update().first()
        if not truck:
            raise NotFoundError("Truck not found")
        trailer = db.query(Trailer).filter(Trailer.id == trip.trailer_id).with_for_update().first()
        if not trailer:
            raise NotFoundError("Trailer not found")

        trip.status = TripStatus.COMPLETED
        trip.fuel_end = fuel_end
        trip.km_end = km_end
        trip.actual_end_date = to_naive_utc(actual_end_date) or utcnow()
        if notes:
            trip.notes = f"{trip.notes}\n{notes}" if trip.notes else notes

        set_vehicle_status(db, truck, VehicleStatus.AVAILABLE, trip_transition=True)
        set_vehicle_status(db, trailer, VehicleStatus.AVAILABLE, trip_transition=True)
        db.flush()

        apply_to_truck(db, truck.id, distance)
        apply_to_target(db, TargetRef(MaintenanceTarget.TRAILER, trailer.id), distance)

        NotificationService.notify_trip_status(db, trip)
        DatabaseLogger.log_activity(
            db, "trip.complete", user_id=_actor_id(actor), entity_type="trip", entity_id=trip.id,
            description=f"distance={distance} km, fuel_end={fuel_end}"
        )
        db.commit()
        db.refresh(trip)

        logger.info(f"Trip {trip.id} completed, {distance} km driven")
        return trip

    @staticmethod
    def trip_summary(db: Session, trip_id: int) -> Dict[str, Any]:
        """Distance, fuel and duration figures for a trip report"""
        trip = TripService.get_trip(db, trip_id)

        refuelled = sum(entry.amount or 0 for entry in
                        db.query(FuelEntry).filter(FuelEntry.trip_id == trip.id).all())

        km_start = trip.km_start or 0
        km_end = trip.km_end if trip.km_end is not None else km_start
        distance = km_end - km_start

        fuel_start = trip.fuel_start or 0
        fuel_end = trip.fuel_end or 0
        consumption = (fuel_start + refuelled) - fuel_end
        average = round(consumption / distance * 100, 1) if distance > 0 else 0

        end = trip.actual_end_date or trip.end_date
        duration_hours = int((end - trip.start_date).total_seconds() // 3600)

        return {
            "trip_id": trip.id,
            "status": trip.status,
            "km_start": km_start,
            "km_end": km_end,
            "distance": distance,
            "fuel_start": fuel_start,
            "fuel_end": fuel_end,
            "fuel_refuelled": refuelled,
            "fuel_consumed": consumption,
            "average_consumption": average,
            "duration_hours": duration_hours,
        }
