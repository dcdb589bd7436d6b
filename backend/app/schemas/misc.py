"""
Schemas for the small back office resources: cities, general expenses,
standalone advances and driver calculations.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any


# Cities

class CityCreate(BaseModel):
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field("NA", max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^[0-9]{6}$")


class CityResponse(BaseModel):
    id: int
    city: str
    state: str
    pincode: Optional[str] = None

    class Config:
        from_attributes = True


# General expenses

class ExpenseCreate(BaseModel):
    amount: float = Field(..., gt=0)
    type: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    vehicle_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    vehicle_id: Optional[int] = None


class ExpenseResponse(BaseModel):
    id: int
    amount: float
    type: str
    notes: Optional[str] = None
    paid_at: datetime
    vehicle_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Standalone advances

class AdvanceCreate(BaseModel):
    user_id: int
    trip_id: Optional[int] = None
    amount: float = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=255)
    paid_by: Optional[str] = Field(None, max_length=100)
    payment_type: str = "cash"


class AdvanceResponse(BaseModel):
    id: int
    user_id: int
    trip_id: Optional[int] = None
    amount: float
    reason: Optional[str] = None
    paid_by: Optional[str] = None
    payment_type: str
    type: str
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AdvanceListResponse(BaseModel):
    advances: List[AdvanceResponse]
    total_amount: float


# Driver calculations

class DriverCalculationCreate(BaseModel):
    driver_id: int
    vehicle_id: Optional[int] = None
    trip_ids: List[int] = []
    old_km: float = Field(0, ge=0)
    new_km: float = Field(0, ge=0)
    per_km_rate: float = Field(0, ge=0)
    pichla: float = 0
    total_expenses: float = Field(0, ge=0)
    total_advances: float = Field(0, ge=0)
    original_trip_data: Optional[Any] = None


class DriverCalculationUpdate(BaseModel):
    trip_ids: Optional[List[int]] = None
    old_km: Optional[float] = Field(None, ge=0)
    new_km: Optional[float] = Field(None, ge=0)
    per_km_rate: Optional[float] = Field(None, ge=0)
    pichla: Optional[float] = None
    total_expenses: Optional[float] = Field(None, ge=0)
    total_advances: Optional[float] = Field(None, ge=0)


class DriverCalculationResponse(BaseModel):
    id: int
    driver_id: int
    vehicle_id: Optional[int] = None
    trip_ids: List[int] = []
    old_km: float
    new_km: float
    per_km_rate: float
    pichla: float
    total_km: float
    km_value: float
    total_expenses: float
    total_advances: float
    total: float
    due: float
    original_trip_data: Optional[Any] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Reports

class ReportResponse(BaseModel):
    """Generic report envelope; `data` layout depends on the report."""
    report: str
    generated_at: datetime
    filters: Dict[str, Any] = {}
    data: Dict[str, Any]
