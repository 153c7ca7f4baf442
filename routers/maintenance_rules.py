from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from database import get_db
from models.maintenance import MaintenanceTarget, IntervalType
from models.user import User
from services.maintenance_service import MaintenanceRuleService
from utils.auth_dependency import get_current_admin, get_current_user

router = APIRouter(prefix="/api/maintenance-rules", tags=["Maintenance Rules"])

class MaintenanceRuleCreate(BaseModel):
    target: MaintenanceTarget
    interval_type: IntervalType
    interval_value: int = Field(..., ge=1)
    description: Optional[str] = None

class MaintenanceRuleUpdate(BaseModel):
    target: Optional[MaintenanceTarget] = None
    interval_type: Optional[IntervalType] = None
    interval_value: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None

class MaintenanceRuleResponse(BaseModel):
    id: int
    target: MaintenanceTarget
    interval_type: IntervalType
    interval_value: int
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True

@router.get("/", response_model=List[MaintenanceRuleResponse])
def get_rules(
    target: Optional[MaintenanceTarget] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return MaintenanceRuleService.list_rules(db, target)

@router.get("/{rule_id}", response_model=MaintenanceRuleResponse)
def get_rule(rule_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return MaintenanceRuleService.get_rule(db, rule_id)

@router.post("/", response_model=MaintenanceRuleResponse, status_code=201)
def create_rule(request: MaintenanceRuleCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    return MaintenanceRuleService.create_rule(
        db, request.target, request.interval_type, request.interval_value, request.description
    )

@router.put("/{rule_id}", response_model=MaintenanceRuleResponse)
def update_rule(
    rule_id: int,
    request: MaintenanceRuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return MaintenanceRuleService.update_rule(db, rule_id, request.dict(exclude_unset=True))

@router.delete("/{rule_id}")
def delete_rule(rule_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    MaintenanceRuleService.delete_rule(db, rule_id)
    return {"message": "Maintenance rule deleted successfully"}
