"""
Vehicle Pydantic schemas.

Defines request and response models for vehicle management.
"""

import re
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from backend.app.models.vehicle_enums import VehicleType, OwnershipType, VehicleStatus, VehicleDocumentType

REGISTRATION_PATTERN = r"^[A-Z]{2}[0-9]{2}[A-Z]{1,2}[0-9]{4}$"


class VehicleDocument(BaseModel):
    number: Optional[str] = None
    expiry_date: Optional[date] = None
    url: Optional[str] = None


class LoanDetails(BaseModel):
    has_loan: bool = True
    lender: Optional[str] = None
    emi_amount: Optional[float] = Field(None, ge=0)
    emi_due_day: Optional[int] = Field(None, ge=1, le=31)
    tenure_months: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None


class VehicleCreate(BaseModel):
    """Schema for registering a vehicle."""
    registration_number: str = Field(..., description="Registration number, e.g. MH12AB1234")
    vehicle_type: VehicleType = VehicleType.TRUCK
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = Field(None, ge=1980, le=2100)
    capacity: float = Field(..., ge=0.5, le=50, description="Capacity in tonnes")

    ownership_type: OwnershipType = OwnershipType.SELF
    owner_id: Optional[int] = Field(None, description="Fleet owner user (fleet_owner vehicles)")
    commission_rate: Optional[float] = Field(None, ge=0, le=100)

    current_kilometers: float = Field(0, ge=0)
    service_interval_km: Optional[float] = Field(None, gt=0)
    next_service_at_km: Optional[float] = Field(None, ge=0)
    documents: Optional[Dict[VehicleDocumentType, VehicleDocument]] = None
    loan_details: Optional[LoanDetails] = None

    @field_validator("registration_number")
    @classmethod
    def normalise_registration(cls, value: str) -> str:
        value = value.replace(" ", "").upper()
        if not re.match(REGISTRATION_PATTERN, value):
            raise ValueError("Invalid registration number format")
        return value


class VehicleUpdate(BaseModel):
    vehicle_type: Optional[VehicleType] = None
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = Field(None, ge=1980, le=2100)
    capacity: Optional[float] = Field(None, ge=0.5, le=50)
    ownership_type: Optional[OwnershipType] = None
    owner_id: Optional[int] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[VehicleStatus] = None
    current_kilometers: Optional[float] = Field(None, ge=0)
    service_interval_km: Optional[float] = Field(None, gt=0)
    next_service_at_km: Optional[float] = Field(None, ge=0)
    loan_details: Optional[LoanDetails] = None
    is_active: Optional[bool] = None


class VehicleResponse(BaseModel):
    id: int
    registration_number: str
    vehicle_type: VehicleType
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    capacity: float
    ownership_type: OwnershipType
    owner_id: Optional[int] = None
    self_owner_id: Optional[int] = None
    commission_rate: float
    status: VehicleStatus
    is_active: bool
    current_kilometers: float
    next_service_at_km: Optional[float] = None
    service_interval_km: Optional[float] = None
    last_service_date: Optional[datetime] = None
    next_service_date: Optional[datetime] = None
    documents: Dict[str, Any] = {}
    loan_details: Optional[Dict[str, Any]] = None
    total_earnings: float
    total_expenses: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for paginated vehicle list."""
    vehicles: List[VehicleResponse]
    total: int
    page: int
    page_size: int


class ExpiringDocument(BaseModel):
    vehicle_id: int
    registration_number: str
    type: str
    expiry_date: date
    expired: bool


class EmiDueVehicle(BaseModel):
    vehicle_id: int
    registration_number: str
    lender: Optional[str] = None
    emi_amount: Optional[float] = None
    next_emi_date: date
    days_left: int


class VehicleExpenseTotal(BaseModel):
    vehicle_id: int
    ledger_expenses: float
    maintenance_cost: float
    general_expenses: float
    total: float


class MonthlyFinanceRow(BaseModel):
    month: str
    income: float
    expenses: float
    net: float


class VehicleMonthlyFinance(BaseModel):
    vehicle_id: int
    year: int
    months: List[MonthlyFinanceRow]
