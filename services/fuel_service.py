from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from models.fuel_entry import FuelEntry
from models.trip import Trip, TripStatus
from models.user import User
from services.exceptions import NotFoundError, InvalidStateError, InvalidInputError, DuplicateKeyError
from services.persistence import flush_or_duplicate, commit_or_duplicate
from utils.logger import DatabaseLogger
import logging

logger = logging.getLogger(__name__)

DUPLICATE_INVOICE = "A fuel entry with this invoice serial already exists"


class FuelService:
    """Fuel entries can only be recorded against a trip that is in progress"""

    @staticmethod
    def _require_trip_in_progress(db: Session, trip_id: int) -> Trip:
        trip = db.query(Trip).filter(Trip.id == trip_id).first()
        if not trip:
            raise NotFoundError("Trip not found")
        if trip.status != TripStatus.IN_PROGRESS:
            raise InvalidStateError("Fuel entries can only be changed on trips in-progress")
        return trip

    @staticmethod
    def _clean_serial(invoice_serial: str) -> str:
        invoice_serial = (invoice_serial or "").strip()
        if not invoice_serial:
            raise InvalidInputError("Invoice serial cannot be empty")
        return invoice_serial

    @staticmethod
    def _ensure_serial_free(db: Session, invoice_serial: str, exclude_id: Optional[int] = None):
        query = db.query(FuelEntry.id).filter(FuelEntry.invoice_serial == invoice_serial)
        if exclude_id is not None:
            query = query.filter(FuelEntry.id != exclude_id)
        if query.first() is not None:
            logger.warning(f"Duplicate fuel invoice serial rejected: {invoice_serial}")
            raise DuplicateKeyError(DUPLICATE_INVOICE)

    @staticmethod
    def get_entry(db: Session, entry_id: int) -> FuelEntry:
        entry = db.query(FuelEntry).filter(FuelEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Fuel entry not found")
        return entry

    @staticmethod
    def list_entries(db: Session) -> List[FuelEntry]:
        return db.query(FuelEntry).order_by(FuelEntry.created_at.desc(), FuelEntry.id.desc()).all()

    @staticmethod
    def list_trip_entries(db: Session, trip_id: int) -> List[FuelEntry]:
        if not db.query(Trip.id).filter(Trip.id == trip_id).first():
            raise NotFoundError("Trip not found")
        return db.query(FuelEntry).filter(FuelEntry.trip_id == trip_id).order_by(FuelEntry.created_at).all()

    @staticmethod
    def create_entry(db: Session, trip_id: int, amount: float, invoice_serial: str, actor: Optional[User] = None) -> FuelEntry:
        invoice_serial = FuelService._clean_serial(invoice_serial)
        FuelService._require_trip_in_progress(db, trip_id)
        FuelService._ensure_serial_free(db, invoice_serial)

        entry = FuelEntry(trip_id=trip_id, amount=amount, invoice_serial=invoice_serial)
        db.add(entry)
        flush_or_duplicate(db, DUPLICATE_INVOICE)
        DatabaseLogger.log_activity(
            db, "fuel_entry.create", user_id=actor.id if actor else None,
            entity_type="fuel_entry", entity_id=entry.id,
            description=f"{amount} L on trip {trip_id} ({invoice_serial})"
        )
        commit_or_duplicate(db, DUPLICATE_INVOICE)
        db.refresh(entry)
        return entry

    @staticmethod
    def update_entry(db: Session, entry_id: int, fields: Dict[str, Any]) -> FuelEntry:
        entry = FuelService.get_entry(db, entry_id)
        FuelService._require_trip_in_progress(db, entry.trip_id)

        invoice_serial = fields.get("invoice_serial")
        if invoice_serial is not None:
            invoice_serial = FuelService._clean_serial(invoice_serial)
        if invoice_serial and invoice_serial != entry.invoice_serial:
            FuelService._ensure_serial_free(db, invoice_serial, exclude_id=entry.id)
            entry.invoice_serial = invoice_serial
        if fields.get("amount") is not None:
            entry.amount = fields["amount"]

        commit_or_duplicate(db, DUPLICATE_INVOICE)
        db.refresh(entry)
        return entry

    @staticmethod
    def delete_entry(db: Session, entry_id: int) -> None:
        entry = FuelService.get_entry(db, entry_id)
        FuelService._require_trip_in_progress(db, entry.trip_id)
        db.delete(entry)
        db.commit()
