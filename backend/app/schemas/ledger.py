"""
Trip ledger Pydantic schemas.

Request bodies for advances, expenses and POD settlement, plus the ledger
entry view shared by trips, users and vehicles.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.trip_enums import LedgerKind, Beneficiary


class ClientAdvanceCreate(BaseModel):
    amount: float = Field(..., gt=0)
    paid_to: Optional[str] = None
    paid_by: str = "client"
    purpose: str = "advances"
    payment_method: str = "cash"
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None


class ClientExpenseCreate(BaseModel):
    type: str = Field("other", max_length=50)
    amount: float = Field(..., gt=0)
    description: Optional[str] = None
    receipt: Optional[str] = None
    paid_by: str = "driver"
    paid_at: Optional[datetime] = None


class PaidAmountCreate(BaseModel):
    amount: float = Field(..., gt=0)
    client_index: int = Field(0, ge=0)
    paid_by: str = "client"
    paid_to: Optional[str] = None
    purpose: str = "general"
    notes: Optional[str] = None


class ClientFinancialsUpdate(BaseModel):
    rate: Optional[float] = Field(None, gt=0)
    truck_hire_cost: Optional[float] = Field(None, ge=0)
    argestment: Optional[float] = Field(None, ge=0)
    load_number: Optional[str] = Field(None, max_length=50)
    load_date: Optional[datetime] = None


class FleetAdvanceCreate(BaseModel):
    amount: float = Field(..., ge=1)
    reason: Optional[str] = None
    payment_type: str = "cash"
    date: Optional[datetime] = None


class FleetExpenseCreate(BaseModel):
    amount: float = Field(..., gt=0)
    reason: Optional[str] = None
    category: str = "fuel"
    description: Optional[str] = None
    receipt_number: Optional[str] = None


class PodDetailsUpdate(BaseModel):
    pod_give: float = Field(..., ge=0)
    date: Optional[datetime] = None
    payment_type: Optional[str] = None
    notes: Optional[str] = None


class SelfExpenseCreate(BaseModel):
    amount: float = Field(..., gt=0)
    expense_for: Beneficiary
    reason: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    receipt_number: Optional[str] = None
    paid_at: Optional[datetime] = None


class SelfAdvanceCreate(BaseModel):
    amount: float = Field(..., gt=0)
    payment_for: Beneficiary
    reason: Optional[str] = None
    recipient_name: Optional[str] = None
    description: Optional[str] = None
    reference_number: Optional[str] = None
    paid_at: Optional[datetime] = None


class LedgerEntryResponse(BaseModel):
    id: int
    trip_id: int
    trip_client_id: Optional[int] = None
    kind: LedgerKind
    amount: float
    reason: Optional[str] = None
    category: Optional[str] = None
    purpose: Optional[str] = None
    payment_method: Optional[str] = None
    paid_by: Optional[str] = None
    paid_to: Optional[str] = None
    description: Optional[str] = None
    reference_number: Optional[str] = None
    recipient_name: Optional[str] = None
    notes: Optional[str] = None
    beneficiary: Optional[Beneficiary] = None
    user_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    paid_at: datetime
    created_by: Optional[int] = None

    class Config:
        from_attributes = True


class LedgerListResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    total_amount: float
