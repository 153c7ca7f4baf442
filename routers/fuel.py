from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from database import get_db
from models.user import User
from services.fuel_service import FuelService
from services.trip_lifecycle import TripService
from utils.auth_dependency import get_current_admin, get_current_admin_or_driver, ensure_owner_or_admin

router = APIRouter(prefix="/api/fuel", tags=["Fuel"])

class FuelEntryCreate(BaseModel):
    trip_id: int
    amount: float = Field(..., ge=0, description="Liters")
    invoice_serial: str = Field(..., min_length=1, max_length=100)

    @validator('invoice_serial')
    def strip_serial(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Invoice serial cannot be empty')
        return v

class FuelEntryUpdate(BaseModel):
    amount: Optional[float] = Field(None, ge=0)
    invoice_serial: Optional[str] = Field(None, min_length=1, max_length=100)

    @validator('invoice_serial')
    def strip_serial(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Invoice serial cannot be empty')
        return v

class FuelEntryResponse(BaseModel):
    id: int
    trip_id: int
    amount: float
    invoice_serial: str
    created_at: datetime

    class Config:
        from_attributes = True

@router.get("/", response_model=List[FuelEntryResponse])
def get_fuel_entries(db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    return FuelService.list_entries(db)

@router.get("/trip/{trip_id}", response_model=List[FuelEntryResponse])
def get_trip_fuel_entries(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    entries = FuelService.list_trip_entries(db, trip_id)
    ensure_owner_or_admin(current_user, TripService.get_trip(db, trip_id).driver_id)
    return entries

@router.get("/{entry_id}", response_model=FuelEntryResponse)
def get_fuel_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin_or_driver)):
    entry = FuelService.get_entry(db, entry_id)
    ensure_owner_or_admin(current_user, entry.trip.driver_id)
    return entry

@router.post("/", response_model=FuelEntryResponse, status_code=201)
def create_fuel_entry(
    request: FuelEntryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    """Record a refuel on a trip in progress. Drivers may only add to their own trips."""
    ensure_owner_or_admin(current_user, TripService.get_trip(db, request.trip_id).driver_id)
    return FuelService.create_entry(db, request.trip_id, request.amount, request.invoice_serial, actor=current_user)

@router.put("/{entry_id}", response_model=FuelEntryResponse)
def update_fuel_entry(
    entry_id: int,
    request: FuelEntryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    ensure_owner_or_admin(current_user, FuelService.get_entry(db, entry_id).trip.driver_id)
    return FuelService.update_entry(db, entry_id, request.dict(exclude_unset=True))

@router.delete("/{entry_id}")
def delete_fuel_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    ensure_owner_or_admin(current_user, FuelService.get_entry(db, entry_id).trip.driver_id)
    FuelService.delete_entry(db, entry_id)
    return {"message": "Fuel entry deleted successfully"}
