from sqlalchemy import Column, Integer, Float, String, Date, DateTime, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow
import enum

class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ON_TRIP = "on_trip"
    MAINTENANCE = "maintenance"

class Truck(Base):
    __tablename__ = "trucks"
    __table_args__ = (
        CheckConstraint("km >= 0", name="ck_trucks_km_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plate_number = Column(String(50), unique=True, nullable=False, index=True)
    brand = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    km = Column(Integer, nullable=False, default=0)
    purchase_date = Column(Date, nullable=True)
    last_maintenance = Column(Date, nullable=True)
    towing_capacity = Column(Float, nullable=False, default=0)  # kg the truck can pull
    # Written only through services.vehicle_status.set_vehicle_status
    status = Column(SQLEnum(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    tires = relationship("Tire", back_populates="truck")
    trips = relationship("Trip", back_populates="truck")

    def __repr__(self):
        return f"<Truck(plate_number={self.plate_number}, km={self.km}, status={self.status})>"
