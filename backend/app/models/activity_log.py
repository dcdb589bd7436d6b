"""
Activity Log Database Model.

Audit trail of who did what to which trip, payment, vehicle or user.
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum, Text, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class ActivityCategory(str, enum.Enum):
    TRIP = "trip"
    PAYMENT = "payment"
    VEHICLE = "vehicle"
    USER = "user"
    MAINTENANCE = "maintenance"
    AUTH = "auth"
    FINANCIAL = "financial"
    SYSTEM = "system"


class ActivitySeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActivityStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class ActivityLog(Base):
    """
    Activity log model.

    `details` is a free-form JSON bag; for financial actions it carries
    an `amount` key which the financial summary aggregates.
    """
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), index=True, nullable=True)

    action = Column(String(100), nullable=False, index=True)
    category = Column(Enum(ActivityCategory), nullable=False, index=True)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    related_trip_id = Column(Integer, index=True, nullable=True)
    related_user_id = Column(Integer, index=True, nullable=True)
    related_vehicle_id = Column(Integer, index=True, nullable=True)
    related_payment_id = Column(Integer, index=True, nullable=True)

    severity = Column(Enum(ActivitySeverity), default=ActivitySeverity.LOW, nullable=False)
    status = Column(Enum(ActivityStatus), default=ActivityStatus.SUCCESS, nullable=False)

    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, action='{self.action}', user_id={self.user_id})>"
