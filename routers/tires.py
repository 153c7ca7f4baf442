from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from database import get_db
from models.tire import Tire, TirePosition, TireStatus
from models.maintenance import MaintenanceTarget
from models.user import User
from services.exceptions import NotFoundError, InvalidInputError
from services.maintenance_service import MaintenanceRecordService
from services.targets import TargetRef
from services.tire_service import check_hosts_exist, normalize_assignment
from utils.auth_dependency import get_current_admin, get_current_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tires", tags=["Tires"])

# Unassigned tires in these states can be mounted
AVAILABLE_STATUSES = (TireStatus.STOCK, TireStatus.USED, TireStatus.NEEDS_REPLACEMENT)

class TireCreate(BaseModel):
    truck_id: Optional[int] = None
    trailer_id: Optional[int] = None
    position: Optional[TirePosition] = None
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    size: str = Field(..., min_length=1, max_length=50)
    status: TireStatus = TireStatus.STOCK
    km: int = Field(0, ge=0)
    purchase_date: Optional[date] = None
    start_use_date: Optional[date] = None
    last_maintenance: Optional[date] = None

class TireUpdate(BaseModel):
    truck_id: Optional[int] = None
    trailer_id: Optional[int] = None
    position: Optional[TirePosition] = None
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    size: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[TireStatus] = None
    purchase_date: Optional[date] = None
    start_use_date: Optional[date] = None
    last_maintenance: Optional[date] = None

class TireStatusUpdate(BaseModel):
    status: TireStatus

class TireResponse(BaseModel):
    id: int
    truck_id: Optional[int]
    trailer_id: Optional[int]
    position: Optional[TirePosition]
    brand: str
    model: str
    size: str
    status: TireStatus
    km: int
    purchase_date: Optional[date]
    start_use_date: Optional[date]
    last_maintenance: Optional[date]
    created_at: datetime

    class Config:
        from_attributes = True

class TireMaintenance(BaseModel):
    id: int
    rule_id: int
    description: Optional[str]
    performed_at: datetime
    km_at_maintenance: Optional[int]

    class Config:
        from_attributes = True

class TireDetailResponse(TireResponse):
    maintenances: Optional[List[TireMaintenance]] = None

def _get_tire(db: Session, tire_id: int) -> Tire:
    tire = db.query(Tire).filter(Tire.id == tire_id).first()
    if not tire:
        raise NotFoundError("Tire not found")
    return tire

@router.get("/", response_model=List[TireResponse])
def get_tires(
    truck: Optional[int] = None,
    trailer: Optional[int] = None,
    status: Optional[TireStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List tires, optionally those mounted on one truck or one trailer"""
    if truck is not None and trailer is not None:
        raise InvalidInputError("You cannot provide both 'truck' and 'trailer' at the same time.")

    query = db.query(Tire)
    if truck is not None:
        query = query.filter(Tire.truck_id == truck)
    elif trailer is not None:
        query = query.filter(Tire.trailer_id == trailer)
    if status:
        query = query.filter(Tire.status == status)
    return query.order_by(Tire.id).all()

@router.get("/available", response_model=List[TireResponse])
def get_available_tires(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return db.query(Tire).filter(
        Tire.truck_id.is_(None),
        Tire.trailer_id.is_(None),
        Tire.status.in_(AVAILABLE_STATUSES)
    ).order_by(Tire.id).all()

@router.get("/{tire_id}", response_model=TireDetailResponse)
def get_tire(
    tire_id: int,
    maintenance: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    tire = _get_tire(db, tire_id)
    response = TireDetailResponse.from_orm(tire)
    if maintenance:
        response.maintenances = [
            TireMaintenance.from_orm(record) for record in
            MaintenanceRecordService.list_records(db, TargetRef(MaintenanceTarget.TIRE, tire.id))
        ]
    return response

@router.post("/", response_model=TireResponse, status_code=201)
def create_tire(request: TireCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    check_hosts_exist(db, request.truck_id, request.trailer_id)

    tire = normalize_assignment(Tire(**request.dict()))
    db.add(tire)
    db.commit()
    db.refresh(tire)

    logger.info(f"Tire {tire.id} created ({tire.status.value})")
    return tire

@router.put("/{tire_id}", response_model=TireResponse)
def update_tire(
    tire_id: int,
    request: TireUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Edit a tire; sending truck_id or trailer_id as null unassigns it"""
    tire = _get_tire(db, tire_id)
    changes = request.dict(exclude_unset=True)
    check_hosts_exist(db, changes.get("truck_id"), changes.get("trailer_id"))

    for key, value in changes.items():
        if value is not None or key in ("truck_id", "trailer_id", "position"):
            setattr(tire, key, value)
    normalize_assignment(tire)

    db.commit()
    db.refresh(tire)
    return tire

@router.patch("/{tire_id}/status", response_model=TireResponse)
def update_tire_status(
    tire_id: int,
    request: TireStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    tire = _get_tire(db, tire_id)
    tire.status = request.status
    normalize_assignment(tire)

    db.commit()
    db.refresh(tire)
    return tire

@router.delete("/{tire_id}")
def delete_tire(tire_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    tire = _get_tire(db, tire_id)
    MaintenanceRecordService.delete_target_records(db, TargetRef(MaintenanceTarget.TIRE, tire.id))
    db.delete(tire)
    db.commit()
    return {"message": "Tire deleted successfully"}
