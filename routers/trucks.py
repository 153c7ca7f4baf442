from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import date, datetime
from database import get_db
from models.truck import Truck, VehicleStatus
from models.trip import Trip
from models.tire import Tire
from models.maintenance import MaintenanceTarget
from models.user import User
from services.exceptions import NotFoundError, ConflictError, DuplicateKeyError
from services.maintenance_service import MaintenanceRecordService
from services.persistence import commit_or_duplicate
from services.targets import TargetRef
from services.tire_service import release_tires
from services.vehicle_status import set_vehicle_status
from utils.auth_dependency import get_current_admin, get_current_user
from utils.logger import DatabaseLogger
from utils.pagination import paginate
from config import settings
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trucks", tags=["Trucks"])

DUPLICATE_PLATE = "A truck with this plate number already exists"

class TruckCreate(BaseModel):
    plate_number: str = Field(..., min_length=1, max_length=50)
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    km: int = Field(0, ge=0)
    purchase_date: Optional[date] = None
    last_maintenance: Optional[date] = None
    towing_capacity: float = Field(0, ge=0)

    @validator('plate_number')
    def normalize_plate(cls, v):
        return v.strip().upper()

class TruckUpdate(BaseModel):
    plate_number: Optional[str] = Field(None, min_length=1, max_length=50)
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    purchase_date: Optional[date] = None
    last_maintenance: Optional[date] = None
    towing_capacity: Optional[float] = Field(None, ge=0)

    @validator('plate_number')
    def normalize_plate(cls, v):
        return v.strip().upper() if v else v

class VehicleStatusUpdate(BaseModel):
    status: VehicleStatus

class TruckResponse(BaseModel):
    id: int
    plate_number: str
    brand: Optional[str]
    model: Optional[str]
    km: int
    purchase_date: Optional[date]
    last_maintenance: Optional[date]
    towing_capacity: float
    status: VehicleStatus
    created_at: datetime

    class Config:
        from_attributes = True

class TruckPage(BaseModel):
    items: List[TruckResponse]
    total: int
    page: int
    limit: int
    total_pages: int

def _get_truck(db: Session, truck_id: int) -> Truck:
    truck = db.query(Truck).filter(Truck.id == truck_id).first()
    if not truck:
        raise NotFoundError("Truck not found")
    return truck

def _ensure_plate_free(db: Session, plate_number: str, exclude_id: Optional[int] = None):
    query = db.query(Truck.id).filter(Truck.plate_number == plate_number)
    if exclude_id is not None:
        query = query.filter(Truck.id != exclude_id)
    if query.first():
        raise DuplicateKeyError(DUPLICATE_PLATE)

@router.get("/", response_model=TruckPage)
def get_trucks(
    status: Optional[VehicleStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Truck)
    if status:
        query = query.filter(Truck.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Truck.plate_number.ilike(pattern),
            Truck.brand.ilike(pattern),
            Truck.model.ilike(pattern)
        ))
    return paginate(query.order_by(Truck.created_at.desc(), Truck.id.desc()), page, limit)

@router.get("/{truck_id}", response_model=TruckResponse)
def get_truck(truck_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_truck(db, truck_id)

@router.post("/", response_model=TruckResponse, status_code=201)
def create_truck(request: TruckCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    _ensure_plate_free(db, request.plate_number)

    truck = Truck(**request.dict(), status=VehicleStatus.AVAILABLE)
    db.add(truck)
    commit_or_duplicate(db, DUPLICATE_PLATE)
    db.refresh(truck)

    logger.info(f"Truck {truck.id} ({truck.plate_number}) created")
    return truck

@router.put("/{truck_id}", response_model=TruckResponse)
def update_truck(
    truck_id: int,
    request: TruckUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Edit truck details. Mileage moves only through trips, maintenance and odometer adjustments."""
    truck = _get_truck(db, truck_id)
    changes = request.dict(exclude_unset=True)

    if changes.get("plate_number") and changes["plate_number"] != truck.plate_number:
        _ensure_plate_free(db, changes["plate_number"], exclude_id=truck.id)
    for key, value in changes.items():
        if value is not None:
            setattr(truck, key, value)

    commit_or_duplicate(db, DUPLICATE_PLATE)
    db.refresh(truck)
    return truck

@router.patch("/{truck_id}/status", response_model=TruckResponse)
def update_truck_status(
    truck_id: int,
    request: VehicleStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    truck = db.query(Truck).filter(Truck.id == truck_id).with_for_update().first()
    if not truck:
        raise NotFoundError("Truck not found")

    set_vehicle_status(db, truck, request.status)
    DatabaseLogger.log_activity(
        db, "truck.status", user_id=current_user.id, entity_type="truck", entity_id=truck.id,
        description=request.status.value
    )
    db.commit()
    db.refresh(truck)
    return truck

@router.delete("/{truck_id}")
def delete_truck(truck_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    truck = _get_truck(db, truck_id)
    if db.query(Trip.id).filter(Trip.truck_id == truck.id).first():
        raise ConflictError("Truck is referenced by trips and cannot be deleted")

    release_tires(db, Tire.truck_id, truck.id)
    MaintenanceRecordService.delete_target_records(db, TargetRef(MaintenanceTarget.TRUCK, truck.id))
    db.delete(truck)
    db.commit()

    logger.info(f"Truck {truck_id} deleted")
    return {"message": "Truck deleted successfully"}
