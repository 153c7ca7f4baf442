from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from database import get_db
from models.trip import TripStatus, TripType
from models.truck import VehicleStatus
from models.user import User, UserRole
from services.availability import find_conflicts
from services.trip_lifecycle import TripService
from utils.auth_dependency import get_current_admin, get_current_admin_or_driver, ensure_owner_or_admin
from utils.clock import to_naive_utc
from config import settings

router = APIRouter(prefix="/api/trips", tags=["Trips"])

class TripCreate(BaseModel):
    truck_id: int
    trailer_id: int
    driver_id: int
    start_location: str = Field(..., min_length=1, max_length=255)
    end_location: str = Field(..., min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    trip_type: TripType = TripType.DELIVERY
    cargo_weight: Optional[float] = Field(None, ge=0)
    planned_fuel: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    notes: Optional[str] = None

class TripUpdate(BaseModel):
    truck_id: Optional[int] = None
    trailer_id: Optional[int] = None
    driver_id: Optional[int] = None
    start_location: Optional[str] = Field(None, min_length=1, max_length=255)
    end_location: Optional[str] = Field(None, min_length=1, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trip_type: Optional[TripType] = None
    cargo_weight: Optional[float] = Field(None, ge=0)
    planned_fuel: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    notes: Optional[str] = None

class StartTripRequest(BaseModel):
    fuel_start: float = Field(..., ge=0)

class CompleteTripRequest(BaseModel):
    fuel_end: float = Field(..., ge=0)
    km_end: int = Field(..., ge=0)
    actual_end_date: Optional[datetime] = None
    notes: Optional[str] = None

class TruckSummary(BaseModel):
    id: int
    plate_number: str
    km: int
    status: VehicleStatus

    class Config:
        from_attributes = True

class TrailerSummary(BaseModel):
    id: int
    plate_number: str
    km: int
    status: VehicleStatus

    class Config:
        from_attributes = True

class DriverSummary(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True

class TripResponse(BaseModel):
    id: int
    truck_id: int
    trailer_id: int
    driver_id: int
    truck: Optional[TruckSummary] = None
    trailer: Optional[TrailerSummary] = None
    driver: Optional[DriverSummary] = None
    start_location: str
    end_location: str
    start_date: datetime
    end_date: datetime
    actual_end_date: Optional[datetime]
    status: TripStatus
    trip_type: TripType
    cargo_weight: Optional[float]
    planned_fuel: Optional[float]
    description: Optional[str]
    notes: Optional[str]
    fuel_start: Optional[float]
    fuel_end: Optional[float]
    km_start: Optional[int]
    km_end: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True

class TripPage(BaseModel):
    items: List[TripResponse]
    total: int
    page: int
    limit: int
    total_pages: int

class TripSummaryResponse(BaseModel):
    trip_id: int
    status: TripStatus
    km_start: int
    km_end: int
    distance: int
    fuel_start: float
    fuel_end: float
    fuel_refuelled: float
    fuel_consumed: float
    average_consumption: float
    duration_hours: int

class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: List[str]

@router.get("/", response_model=TripPage)
def get_trips(
    status: Optional[TripStatus] = None,
    type: Optional[TripType] = None,
    search: Optional[str] = None,
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    """Paginated trips. Drivers only ever see their own."""
    driver_id = current_user.id if current_user.role == UserRole.DRIVER else None
    return TripService.list_trips(
        db, status=status, trip_type=type, search=search, driver_id=driver_id,
        order=order, page=page, limit=limit
    )

@router.get("/availability", response_model=AvailabilityResponse)
def check_trip_availability(
    truck_id: int,
    trailer_id: int,
    driver_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_trip_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Every reason the resources cannot be booked for the window, in one answer"""
    conflicts = find_conflicts(
        db, truck_id, trailer_id, driver_id,
        to_naive_utc(start_date), to_naive_utc(end_date), exclude_trip_id
    )
    # Read-only check; release the row locks taken while probing
    db.rollback()
    return AvailabilityResponse(available=not conflicts, conflicts=conflicts)

@router.get("/driver/{driver_id}", response_model=TripPage)
def get_driver_trips(
    driver_id: int,
    status: Optional[TripStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    ensure_owner_or_admin(current_user, driver_id)
    return TripService.list_driver_trips(db, driver_id, status=status, page=page, limit=limit)

@router.get("/{trip_id}", response_model=TripResponse)
def get_trip(trip_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin_or_driver)):
    trip = TripService.get_trip(db, trip_id)
    ensure_owner_or_admin(current_user, trip.driver_id)
    return trip

@router.get("/{trip_id}/summary", response_model=TripSummaryResponse)
def get_trip_summary(trip_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin_or_driver)):
    """Distance, fuel and duration figures for one trip"""
    ensure_owner_or_admin(current_user, TripService.get_trip(db, trip_id).driver_id)
    return TripService.trip_summary(db, trip_id)

@router.post("/", response_model=TripResponse, status_code=201)
def create_trip(request: TripCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    return TripService.create_trip(db, request.dict(), actor=current_user)

@router.put("/{trip_id}", response_model=TripResponse)
def update_trip(
    trip_id: int,
    request: TripUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    fields = {k: v for k, v in request.dict(exclude_unset=True).items() if v is not None}
    return TripService.update_trip(db, trip_id, fields, actor=current_user)

@router.delete("/{trip_id}")
def delete_trip(trip_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    TripService.delete_trip(db, trip_id, actor=current_user)
    return {"message": "Trip deleted successfully"}

@router.patch("/{trip_id}/start", response_model=TripResponse)
def start_trip(
    trip_id: int,
    request: StartTripRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    ensure_owner_or_admin(current_user, TripService.get_trip(db, trip_id).driver_id)
    return TripService.start_trip(db, trip_id, request.fuel_start, actor=current_user)

@router.patch("/{trip_id}/complete", response_model=TripResponse)
def complete_trip(
    trip_id: int,
    request: CompleteTripRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_or_driver)
):
    ensure_owner_or_admin(current_user, TripService.get_trip(db, trip_id).driver_id)
    return TripService.complete_trip(
        db,
        trip_id,
        fuel_end=request.fuel_end,
        km_end=request.km_end,
        actual_end_date=request.actual_end_date,
        notes=request.notes,
        actor=current_user
    )
