from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional
from database import get_db
from models.maintenance import MaintenanceTarget
from models.user import User
from services.odometer import apply_to_target
from services.targets import TargetRef, load_target
from utils.auth_dependency import get_current_admin
from utils.logger import DatabaseLogger
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/odometer", tags=["Odometer"])

class OdometerAdjustRequest(BaseModel):
    target_type: MaintenanceTarget
    target_id: int
    delta: int = Field(..., gt=0, description="Kilometers to add")
    reason: Optional[str] = Field(None, max_length=255)

class OdometerAdjustResponse(BaseModel):
    target_type: MaintenanceTarget
    target_id: int
    km: int
    applied: int

@router.post("/adjust", response_model=OdometerAdjustResponse)
def adjust_odometer(
    request: OdometerAdjustRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Manual odometer correction; vehicles carry the delta to their mounted tires"""
    target = TargetRef(request.target_type, request.target_id)
    row = load_target(db, target, for_update=True)

    apply_to_target(db, target, request.delta)
    DatabaseLogger.log_activity(
        db, "odometer.adjust", user_id=current_user.id, entity_type=target.kind.value,
        entity_id=target.id, description=f"+{request.delta} km" + (f" ({request.reason})" if request.reason else "")
    )
    db.commit()
    db.refresh(row)

    logger.info(f"Odometer of {target.kind.value} {target.id} adjusted by admin {current_user.id}")
    return OdometerAdjustResponse(
        target_type=target.kind, target_id=target.id, km=row.km, applied=request.delta
    )
