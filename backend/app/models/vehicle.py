"""
Vehicle database model.

Vehicles are either owned by the brokerage (self) or hired from a fleet owner.
"""

from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, JSON, Boolean
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.core.timeutils import utcnow
from backend.app.models.vehicle_enums import VehicleType, OwnershipType, VehicleStatus, VehicleDocumentType


class Vehicle(Base):
    """
    Vehicle model.

    `documents` holds one entry per VehicleDocumentType:
        {"insurance": {"number": ..., "expiry_date": "2026-01-31", "url": ...}, ...}
    `loan_details` holds the EMI schedule when the vehicle is financed.
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    registration_number = Column(String(20), unique=True, index=True, nullable=False)
    vehicle_type = Column(Enum(VehicleType), default=VehicleType.TRUCK, nullable=False)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    capacity = Column(Float, nullable=False)  # tonnes

    # Ownership
    ownership_type = Column(Enum(OwnershipType), default=OwnershipType.SELF, nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    self_owner_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    commission_rate = Column(Float, default=0, nullable=False)

    status = Column(Enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Odometer and servicing
    current_kilometers = Column(Float, default=0, nullable=False)
    next_service_at_km = Column(Float, nullable=True)
    service_interval_km = Column(Float, nullable=True)
    last_service_date = Column(DateTime(timezone=True), nullable=True)
    next_service_date = Column(DateTime(timezone=True), nullable=True)

    documents = Column(JSON, nullable=False, default=dict)
    loan_details = Column(JSON, nullable=True)

    total_earnings = Column(Float, default=0, nullable=False)
    total_expenses = Column(Float, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def owner_details(self, owner=None) -> Dict[str, Any]:
        """
        Ownership snapshot copied onto trips at booking time.

        Args:
            owner: The owning User (fleet owner, or the admin for self-owned vehicles)

        Returns:
            Dict with ownership_type, owner_id, owner_name, owner_contact, commission_rate.
            Self-owned vehicles always report a commission rate of 0.
        """
        is_self = self.ownership_type == OwnershipType.SELF
        return {
            "ownership_type": self.ownership_type,
            "owner_id": owner.id if owner else (self.self_owner_id if is_self else self.owner_id),
            "owner_name": owner.name if owner else None,
            "owner_contact": owner.phone if owner else None,
            "commission_rate": 0.0 if is_self else float(self.commission_rate or 0),
        }

    def expiring_documents(self, days: int = 30, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """List documents whose expiry date falls on or before today + days."""
        today = today or utcnow().date()
        check_date = today + timedelta(days=days)
        expiring = []
        for doc_type in VehicleDocumentType:
            doc = (self.documents or {}).get(doc_type.value) or {}
            expiry = parse_date(doc.get("expiry_date"))
            if expiry and expiry <= check_date:
                expiring.append({
                    "type": doc_type.value,
                    "expiry_date": expiry,
                    "expired": expiry < today,
                })
        return expiring

    def next_emi_date(self, today: Optional[date] = None) -> Optional[date]:
        """Next EMI due date from loan_details.emi_due_day, or None without an active loan."""
        loan = self.loan_details or {}
        if not loan.get("has_loan") or not loan.get("emi_due_day"):
            return None
        today = today or utcnow().date()
        due_day = min(int(loan["emi_due_day"]), 28)
        candidate = today.replace(day=due_day)
        if candidate < today:
            month = today.month % 12 + 1
            year = today.year + (1 if today.month == 12 else 0)
            candidate = date(year, month, due_day)
        return candidate

    def __repr__(self):
        return f"<Vehicle(id={self.id}, registration='{self.registration_number}', status='{self.status.value}')>"


def parse_date(value) -> Optional[date]:
    """Accept a date, datetime or ISO string (as stored in JSON columns)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()
