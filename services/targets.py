"""
Explicit references to maintenance and odometer targets.

A TargetRef pairs a MaintenanceTarget kind with a row id, so callers never
guess which table an id belongs to.
"""
from dataclasses import dataclass
from sqlalchemy.orm import Session
from models.maintenance import MaintenanceTarget
from models.truck import Truck
from models.trailer import Trailer
from models.tire import Tire
from services.exceptions import NotFoundError

MODELS = {
    MaintenanceTarget.TRUCK: Truck,
    MaintenanceTarget.TRAILER: Trailer,
    MaintenanceTarget.TIRE: Tire,
}

# Tire foreign key pointing at each vehicle kind
TIRE_HOST_COLUMNS = {
    MaintenanceTarget.TRUCK: Tire.truck_id,
    MaintenanceTarget.TRAILER: Tire.trailer_id,
}


@dataclass(frozen=True)
class TargetRef:
    kind: MaintenanceTarget
    id: int

    @property
    def model(self):
        return MODELS[self.kind]

    @property
    def has_tires(self) -> bool:
        return self.kind in TIRE_HOST_COLUMNS

    @property
    def label(self) -> str:
        return self.kind.value.capitalize()


def load_target(db: Session, target: TargetRef, for_update: bool = False):
    """Fetch the row a TargetRef points at, raising NotFoundError when absent"""
    query = db.query(target.model).filter(target.model.id == target.id)
    if for_update:
        query = query.with_for_update()
    row = query.first()
    if row is None:
        raise NotFoundError(f"{target.label} not found")
    return row
