"""
Payment Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.payment_enums import PaymentType, PaymentStatus, PaymentMethod


class TaxDetails(BaseModel):
    gst: float = Field(0, ge=0)
    tds: float = Field(0, ge=0)


class PaymentCreate(BaseModel):
    trip_id: int
    amount: float = Field(..., gt=0)
    payment_type: PaymentType
    paid_by_id: Optional[int] = None
    paid_to_id: Optional[int] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_details: Optional[Dict[str, Any]] = None
    payment_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    commission_amount: float = Field(0, ge=0)
    tax_details: Optional[TaxDetails] = None
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    """
    Mutable payment fields.

    trip_id, amount, payment_type, paid_by_id and paid_to_id are accepted only
    so they can be rejected explicitly.
    """
    trip_id: Optional[int] = None
    amount: Optional[float] = None
    payment_type: Optional[PaymentType] = None
    paid_by_id: Optional[int] = None
    paid_to_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_details: Optional[Dict[str, Any]] = None
    payment_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tax_details: Optional[TaxDetails] = None
    notes: Optional[str] = None


class PaymentCancel(BaseModel):
    reason: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    trip_id: int
    amount: float
    payment_type: PaymentType
    paid_by_id: Optional[int] = None
    paid_to_id: Optional[int] = None
    status: PaymentStatus
    payment_method: PaymentMethod
    transaction_details: Optional[Dict[str, Any]] = None
    payment_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    commission_amount: float
    tax_details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    """Schema for paginated payment list."""
    payments: List[PaymentResponse]
    total: int
    page: int
    page_size: int


class PaymentStatsResponse(BaseModel):
    total_payments: int
    total_amount: float
    by_status: Dict[str, Dict[str, float]]
    by_type: Dict[str, Dict[str, float]]
