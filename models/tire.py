from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow
import enum

class TirePosition(str, enum.Enum):
    FRONT_LEFT = "front-left"
    FRONT_RIGHT = "front-right"
    REAR_LEFT = "rear-left"
    REAR_RIGHT = "rear-right"
    MIDDLE_LEFT = "middle-left"
    MIDDLE_RIGHT = "middle-right"

class TireStatus(str, enum.Enum):
    STOCK = "stock"  # new tire in stock
    MOUNTED = "mounted"  # currently installed on a vehicle
    USED = "used"  # removed but still usable
    NEEDS_REPLACEMENT = "needs_replacement"
    OUT_OF_SERVICE = "out_of_service"

# Statuses an assigned tire may keep; anything else is normalized to MOUNTED
ASSIGNED_STATUSES = (TireStatus.MOUNTED, TireStatus.USED, TireStatus.NEEDS_REPLACEMENT)

class Tire(Base):
    __tablename__ = "tires"
    __table_args__ = (
        CheckConstraint("NOT (truck_id IS NOT NULL AND trailer_id IS NOT NULL)", name="ck_tires_single_host"),
        CheckConstraint("km >= 0", name="ck_tires_km_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    truck_id = Column(Integer, ForeignKey("trucks.id", ondelete="SET NULL"), nullable=True, index=True)
    trailer_id = Column(Integer, ForeignKey("trailers.id", ondelete="SET NULL"), nullable=True, index=True)
    position = Column(SQLEnum(TirePosition, values_callable=lambda e: [m.value for m in e]), nullable=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    size = Column(String(50), nullable=False)  # e.g. "295/75 R22.5"
    status = Column(SQLEnum(TireStatus), nullable=False, default=TireStatus.STOCK)
    km = Column(Integer, nullable=False, default=0)
    purchase_date = Column(Date, nullable=True)
    start_use_date = Column(Date, nullable=True)
    last_maintenance = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    truck = relationship("Truck", back_populates="tires")
    trailer = relationship("Trailer", back_populates="tires")

    def __repr__(self):
        return f"<Tire(id={self.id}, truck_id={self.truck_id}, trailer_id={self.trailer_id}, km={self.km})>"
