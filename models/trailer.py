from sqlalchemy import Column, Integer, Float, String, Date, DateTime, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from database import Base
from models.truck import VehicleStatus
from utils.clock import utcnow

class Trailer(Base):
    __tablename__ = "trailers"
    __table_args__ = (
        CheckConstraint("km >= 0", name="ck_trailers_km_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plate_number = Column(String(50), unique=True, nullable=False, index=True)
    type = Column(String(50), nullable=True)  # box, flatbed, tanker...
    max_load = Column(Float, nullable=True)  # kg
    km = Column(Integer, nullable=False, default=0)
    purchase_date = Column(Date, nullable=True)
    last_maintenance = Column(Date, nullable=True)
    status = Column(SQLEnum(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    tires = relationship("Tire", back_populates="trailer")
    trips = relationship("Trip", back_populates="trailer")

    def __repr__(self):
        return f"<Trailer(plate_number={self.plate_number}, status={self.status})>"
