from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import date, datetime
from database import get_db
from models.trailer import Trailer
from models.truck import VehicleStatus
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

router = APIRouter(prefix="/api/trailers", tags=["Trailers"])

DUPLICATE_PLATE = "A trailer with this plate number already exists"

class TrailerCreate(BaseModel):
    plate_number: str = Field(..., min_length=1, max_length=50)
    type: Optional[str] = Field(None, max_length=50)
    max_load: Optional[float] = Field(None, ge=0)
    km: int = Field(0, ge=0)
    purchase_date: Optional[date] = None
    last_maintenance: Optional[date] = None

    @validator('plate_number')
    def normalize_plate(cls, v):
        return v.strip().upper()

class TrailerUpdate(BaseModel):
    plate_number: Optional[str] = Field(None, min_length=1, max_length=50)
    type: Optional[str] = Field(None, max_length=50)
    max_load: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[date] = None
    last_maintenance: Optional[date] = None

    @validator('plate_number')
    def normalize_plate(cls, v):
        return v.strip().upper() if v else v

class VehicleStatusUpdate(BaseModel):
    status: VehicleStatus

class TrailerResponse(BaseModel):
    id: int
    plate_number: str
    type: Optional[str]
    max_load: Optional[float]
    km: int
    purchase_date: Optional[date]
    last_maintenance: Optional[date]
    status: VehicleStatus
    created_at: datetime

    class Config:
        from_attributes = True

class TrailerPage(BaseModel):
    items: List[TrailerResponse]
    total: int
    page: int
    limit: int
    total_pages: int

def _get_trailer(db: Session, trailer_id: int) -> Trailer:
    trailer = db.query(Trailer).filter(Trailer.id == trailer_id).first()
    if not trailer:
        raise NotFoundError("Trailer not found")
    return trailer

def _ensure_plate_free(db: Session, plate_number: str, exclude_id: Optional[int] = None):
    query = db.query(Trailer.id).filter(Trailer.plate_number == plate_number)
    if exclude_id is not None:
        query = query.filter(Trailer.id != exclude_id)
    if query.first():
        raise DuplicateKeyError(DUPLICATE_PLATE)

@router.get("/", response_model=TrailerPage)
def get_trailers(
    status: Optional[VehicleStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Trailer)
    if status:
        query = query.filter(Trailer.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Trailer.plate_number.ilike(pattern), Trailer.type.ilike(pattern)))
    return paginate(query.order_by(Trailer.created_at.desc(), Trailer.id.desc()), page, limit)

@router.get("/{trailer_id}", response_model=TrailerResponse)
def get_trailer(trailer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_trailer(db, trailer_id)

@router.post("/", response_model=TrailerResponse, status_code=201)
def create_trailer(request: TrailerCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    _ensure_plate_free(db, request.plate_number)

    trailer = Trailer(**request.dict(), status=VehicleStatus.AVAILABLE)
    db.add(trailer)
    commit_or_duplicate(db, DUPLICATE_PLATE)
    db.refresh(trailer)

    logger.info(f"Trailer {trailer.id} ({trailer.plate_number}) created")
    return trailer

@router.put("/{trailer_id}", response_model=TrailerResponse)
def update_trailer(
    trailer_id: int,
    request: TrailerUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    trailer = _get_trailer(db, trailer_id)
    changes = request.dict(exclude_unset=True)

    if changes.get("plate_number") and changes["plate_number"] != trailer.plate_number:
        _ensure_plate_free(db, changes["plate_number"], exclude_id=trailer.id)
    for key, value in changes.items():
        if value is not None:
            setattr(trailer, key, value)

    commit_or_duplicate(db, DUPLICATE_PLATE)
    db.refresh(trailer)
    return trailer

@router.patch("/{trailer_id}/status", response_model=TrailerResponse)
def update_trailer_status(
    trailer_id: int,
    request: VehicleStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    trailer = db.query(Trailer).filter(Trailer.id == trailer_id).with_for_update().first()
    if not trailer:
        raise NotFoundError("Trailer not found")

    set_vehicle_status(db, trailer, request.status)
    DatabaseLogger.log_activity(
        db, "trailer.status", user_id=current_user.id, entity_type="trailer", entity_id=trailer.id,
        description=request.status.value
    )
    db.commit()
    db.refresh(trailer)
    return trailer

@router.delete("/{trailer_id}")
def delete_trailer(trailer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    trailer = _get_trailer(db, trailer_id)
    if db.query(Trip.id).filter(Trip.trailer_id == trailer.id).first():
        raise ConflictError("Trailer is referenced by trips and cannot be deleted")

    release_tires(db, Tire.trailer_id, trailer.id)
    MaintenanceRecordService.delete_target_records(db, TargetRef(MaintenanceTarget.TRAILER, trailer.id))
    db.delete(trailer)
    db.commit()

    logger.info(f"Trailer {trailer_id} deleted")
    return {"message": "Trailer deleted successfully"}
