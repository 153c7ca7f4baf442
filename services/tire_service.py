from typing import Optional
from sqlalchemy.orm import Session
from models.tire import Tire, TireStatus, ASSIGNED_STATUSES
from models.truck import Truck
from models.trailer import Trailer
from services.exceptions import InvalidInputError
import logging

logger = logging.getLogger(__name__)


def check_hosts_exist(db: Session, truck_id: Optional[int], trailer_id: Optional[int]):
    if truck_id is not None and not db.query(Truck.id).filter(Truck.id == truck_id).first():
        raise InvalidInputError("Referenced truck does not exist")
    if trailer_id is not None and not db.query(Trailer.id).filter(Trailer.id == trailer_id).first():
        raise InvalidInputError("Referenced trailer does not exist")


def normalize_assignment(tire: Tire) -> Tire:
    """Enforce the single-host rule and keep status consistent with assignment.

    An assigned tire that is not mounted/used/needs_replacement becomes
    mounted; an unassigned tire cannot be mounted or used.
    """
    assigned = tire.truck_id is not None or tire.trailer_id is not None
    if tire.truck_id is not None and tire.trailer_id is not None:
        raise InvalidInputError("A tire cannot be assigned to both a truck and a trailer.")

    status = tire.status or TireStatus.STOCK
    if assigned and status not in ASSIGNED_STATUSES:
        tire.status = TireStatus.MOUNTED
    elif not assigned and status in (TireStatus.MOUNTED, TireStatus.USED):
        raise InvalidInputError(f"A tire with status '{status.value}' must be assigned to a truck or trailer.")
    return tire


def release_tires(db: Session, host_column, host_id: int) -> int:
    """Unassign every tire on a vehicle that is about to be deleted.

    Mounted and used tires go back to stock; worn ones keep their status.
    """
    tires = db.query(Tire).filter(host_column == host_id).all()
    for tire in tires:
        tire.truck_id = None
        tire.trailer_id = None
        if tire.status in (TireStatus.MOUNTED, TireStatus.USED):
            tire.status = TireStatus.STOCK
    if tires:
        logger.info(f"Released {len(tires)} tire(s) from vehicle {host_id}")
    return len(tires)
