from sqlalchemy import Column, Integer, Float, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow
import enum

class TripStatus(str, enum.Enum):
    TODO = "to-do"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

class TripType(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"
    TRANSFER = "transfer"
    OTHER = "other"

# Trips in these states occupy their truck, trailer and driver
ACTIVE_TRIP_STATUSES = (TripStatus.TODO, TripStatus.IN_PROGRESS)

class Trip(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    truck_id = Column(Integer, ForeignKey("trucks.id"), nullable=False, index=True)
    trailer_id = Column(Integer, ForeignKey("trailers.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    start_location = Column(String(255), nullable=False)
    end_location = Column(String(255), nullable=False)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)
    actual_end_date = Column(DateTime, nullable=True)

    # Stored by value so "to-do" and "in-progress" keep their hyphens in the database
    status = Column(
        SQLEnum(TripStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TripStatus.TODO,
        index=True,
    )
    trip_type = Column(SQLEnum(TripType), nullable=False, default=TripType.DELIVERY)
    cargo_weight = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    planned_fuel = Column(Float, nullable=True)  # liters planned for the trip
    fuel_start = Column(Float, nullable=True)  # liters at trip start
    fuel_end = Column(Float, nullable=True)  # liters at trip end
    km_start = Column(Integer, nullable=True)  # truck odometer snapshot at start
    km_end = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    truck = relationship("Truck", back_populates="trips")
    trailer = relationship("Trailer", back_populates="trips")
    driver = relationship("User", back_populates="trips")
    fuel_entries = relationship("FuelEntry", back_populates="trip", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Trip(id={self.id}, truck_id={self.truck_id}, status='{self.status.value}')>"
