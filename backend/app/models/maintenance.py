"""
Maintenance record database model.
"""

import enum
from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, String, JSON, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base


class MaintenanceType(str, enum.Enum):
    SCHEDULED = "scheduled"
    BREAKDOWN = "breakdown"
    ACCIDENT = "accident"
    INSPECTION = "inspection"
    REPAIR = "repair"
    SERVICE = "service"


class MaintenanceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaintenancePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MaintenanceRecord(Base):
    """
    Maintenance record model.

    total_cost is always labor_cost + parts_cost + other_cost.
    """
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    maintenance_type = Column(Enum(MaintenanceType), nullable=False)
    description = Column(Text, nullable=False)
    service_provider = Column(JSON, nullable=True)  # {name, contact, address}

    labor_cost = Column(Float, default=0, nullable=False)
    parts_cost = Column(Float, default=0, nullable=False)
    other_cost = Column(Float, default=0, nullable=False)
    total_cost = Column(Float, default=0, nullable=False)
    parts_replaced = Column(JSON, nullable=False, default=list)

    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    completed_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(Enum(MaintenanceStatus), default=MaintenanceStatus.SCHEDULED, nullable=False, index=True)
    priority = Column(Enum(MaintenancePriority), default=MaintenancePriority.MEDIUM, nullable=False)

    odometer_reading = Column(Float, nullable=True)
    next_service_km = Column(Float, nullable=True)
    documents = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def recalculate_total(self) -> float:
        self.total_cost = (self.labor_cost or 0) + (self.parts_cost or 0) + (self.other_cost or 0)
        return self.total_cost

    def __repr__(self):
        return f"<MaintenanceRecord(id={self.id}, vehicle_id={self.vehicle_id}, status='{self.status.value}')>"
