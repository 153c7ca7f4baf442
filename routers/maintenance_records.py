from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from database import get_db
from models.maintenance import MaintenanceTarget, IntervalType
from models.tire import TirePosition, TireStatus
from models.user import User
from services.maintenance_service import MaintenanceRecordService
from services.targets import TargetRef
from utils.auth_dependency import get_current_admin, get_current_user

router = APIRouter(prefix="/api/maintenance-records", tags=["Maintenance Records"])

class MaintenanceRecordCreate(BaseModel):
    target_type: MaintenanceTarget
    target_id: int
    rule_id: int
    description: Optional[str] = None
    performed_at: Optional[datetime] = None
    km_at_maintenance: Optional[int] = Field(None, ge=0)

class MaintenanceRecordUpdate(BaseModel):
    target_type: Optional[MaintenanceTarget] = None
    target_id: Optional[int] = None
    rule_id: Optional[int] = None
    description: Optional[str] = None
    performed_at: Optional[datetime] = None
    km_at_maintenance: Optional[int] = Field(None, ge=0)

class RuleSummary(BaseModel):
    id: int
    target: MaintenanceTarget
    interval_type: IntervalType
    interval_value: int
    description: Optional[str]

    class Config:
        from_attributes = True

class MaintenanceRecordResponse(BaseModel):
    id: int
    target_type: MaintenanceTarget
    target_id: int
    rule_id: int
    rule: Optional[RuleSummary] = None
    description: Optional[str]
    performed_at: datetime
    km_at_maintenance: Optional[int]
    odometer_km: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True

class TireWithRecords(BaseModel):
    id: int
    position: Optional[TirePosition]
    brand: str
    model: str
    status: TireStatus
    km: int

    class Config:
        from_attributes = True

class TireRecords(BaseModel):
    tire: TireWithRecords
    maintenances: List[MaintenanceRecordResponse]

class VehicleRecordsResponse(BaseModel):
    vehicle_records: List[MaintenanceRecordResponse]
    tire_records: List[TireRecords]

class DueStatusResponse(BaseModel):
    rule_id: int
    description: Optional[str]
    interval_type: IntervalType
    interval_value: int
    last_performed_at: Optional[datetime]
    next_due_km: Optional[int]
    next_due_date: Optional[datetime]
    due: bool

@router.get("/", response_model=List[MaintenanceRecordResponse])
def get_records(
    target_type: Optional[MaintenanceTarget] = None,
    target_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All records, newest first; narrow to one target with target_type and target_id"""
    target = TargetRef(target_type, target_id) if target_type and target_id is not None else None
    return MaintenanceRecordService.list_records(db, target)

@router.get("/vehicle", response_model=VehicleRecordsResponse)
def get_vehicle_records(
    truck: Optional[int] = None,
    trailer: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """A truck's or trailer's records together with those of its mounted tires"""
    return MaintenanceRecordService.records_for_vehicle(db, truck_id=truck, trailer_id=trailer)

@router.get("/due", response_model=List[DueStatusResponse])
def get_due_status(
    target_type: MaintenanceTarget,
    target_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return MaintenanceRecordService.due_status(db, TargetRef(target_type, target_id))

@router.get("/{record_id}", response_model=MaintenanceRecordResponse)
def get_record(record_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return MaintenanceRecordService.get_record(db, record_id)

@router.post("/", response_model=MaintenanceRecordResponse, status_code=201)
def create_record(
    request: MaintenanceRecordCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return MaintenanceRecordService.create_record(
        db,
        TargetRef(request.target_type, request.target_id),
        request.rule_id,
        km_at_maintenance=request.km_at_maintenance,
        performed_at=request.performed_at,
        description=request.description,
        actor=current_user
    )

@router.put("/{record_id}", response_model=MaintenanceRecordResponse)
def update_record(
    record_id: int,
    request: MaintenanceRecordUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return MaintenanceRecordService.update_record(
        db, record_id, request.dict(exclude_unset=True), actor=current_user
    )

@router.delete("/{record_id}")
def delete_record(record_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    MaintenanceRecordService.delete_record(db, record_id, actor=current_user)
    return {"message": "Maintenance record deleted successfully"}
