from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow
import enum

class MaintenanceTarget(str, enum.Enum):
    TRUCK = "truck"
    TRAILER = "trailer"
    TIRE = "tire"

class IntervalType(str, enum.Enum):
    KM = "km"
    DAYS = "days"

class MaintenanceRule(Base):
    __tablename__ = "maintenance_rules"
    __table_args__ = (
        UniqueConstraint("target", "interval_type", "interval_value", name="uq_maintenance_rules_policy"),
    )

    id = Column(Integer, primary_key=True, index=True)
    target = Column(SQLEnum(MaintenanceTarget), nullable=False, index=True)
    interval_type = Column(SQLEnum(IntervalType), nullable=False)
    interval_value = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    records = relationship("MaintenanceRecord", back_populates="rule")

    def __repr__(self):
        return f"<MaintenanceRule({self.target.value} every {self.interval_value} {self.interval_type.value})>"

class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"
    __table_args__ = (
        UniqueConstraint("target_type", "target_id", "rule_id", "performed_at", name="uq_maintenance_records_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    target_type = Column(SQLEnum(MaintenanceTarget), nullable=False, index=True)
    target_id = Column(Integer, nullable=False, index=True)
    rule_id = Column(Integer, ForeignKey("maintenance_rules.id"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    performed_at = Column(DateTime, default=utcnow, nullable=False)
    # Kilometers driven since the previous service; added to the target's odometer
    km_at_maintenance = Column(Integer, nullable=True)
    # Target odometer right after the record was applied, the baseline for km-interval rules
    odometer_km = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    rule = relationship("MaintenanceRule", back_populates="records")
