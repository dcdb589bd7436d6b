"""
Trip Pydantic schemas.

Defines request and response models for trip booking, listing and status
changes. Money fields in responses are the stored derived values.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.trip_enums import (
    TripStatus,
    ClientPodStatus,
    ClientPaymentStatus,
    LoadType,
    TripDocumentType,
)
from backend.app.models.vehicle_enums import OwnershipType


class Place(BaseModel):
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., pattern=r"^[0-9]{6}$")


class LoadDetails(BaseModel):
    description: Optional[str] = None
    weight: float = Field(..., gt=0, description="Weight in tonnes")
    quantity: int = Field(1, ge=1)
    load_type: LoadType = LoadType.GENERAL
    packaging_type: str = "boxes"
    special_instructions: Optional[str] = None


class TripClientCreate(BaseModel):
    client_id: int
    load_details: LoadDetails
    origin: Place
    destination: Place
    rate: float = Field(..., gt=0)
    truck_hire_cost: float = Field(0, ge=0)
    argestment: float = Field(0, ge=0)
    load_number: Optional[str] = Field(None, max_length=50)
    load_date: Optional[datetime] = None


class TripCreate(BaseModel):
    """Schema for booking a trip."""
    vehicle_id: int
    driver_id: Optional[int] = Field(None, description="Required for self-owned vehicles")
    clients: List[TripClientCreate] = Field(..., min_length=1)
    scheduled_date: datetime
    estimated_duration: Optional[float] = Field(None, gt=0, description="Hours")
    estimated_distance: Optional[float] = Field(None, gt=0, description="Kilometres")
    notes: Optional[str] = None


class TripUpdate(BaseModel):
    """Admin edits. A new vehicle must be available."""
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    estimated_duration: Optional[float] = Field(None, gt=0)
    estimated_distance: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None


class TripStatusUpdate(BaseModel):
    status: TripStatus


class TripClientResponse(BaseModel):
    id: int
    client_id: int
    position: int
    load_details: Dict[str, Any]
    origin: Dict[str, Any]
    destination: Dict[str, Any]
    rate: float
    total_rate: float
    paid_amount: float
    due_amount: float
    total_expense: float
    truck_hire_cost: float
    commission: float
    argestment: float
    payment_status: ClientPaymentStatus
    invoice_generated: bool
    invoice_number: Optional[str] = None
    invoice_date: Optional[datetime] = None
    load_number: Optional[str] = None
    load_date: Optional[datetime] = None
    pod_status: ClientPodStatus
    pod_date: Optional[datetime] = None
    pod_document: Optional[str] = None
    documents: List[Dict[str, Any]] = []

    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    id: int
    trip_number: str
    vehicle_id: int
    driver_id: Optional[int] = None
    ownership_type: OwnershipType
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    owner_contact: Optional[str] = None
    commission_rate: float
    scheduled_date: datetime
    estimated_duration: Optional[float] = None
    estimated_distance: Optional[float] = None
    notes: Optional[str] = None
    status: TripStatus

    booked_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    billed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    total_client_amount: float
    vehicle_owner_amount: float
    total_commission: float
    total_fleet_advance: float
    total_fleet_expense: float
    pod_balance: float
    pod_balance_total_paid: float
    pod_details: Optional[Dict[str, Any]] = None
    pod_status: ClientPodStatus
    pod_date: Optional[datetime] = None
    pod_document: Optional[str] = None
    documents: Dict[str, Any] = {}

    # Read-only aggregates
    total_advance: float
    total_expenses: float
    balance_amount: float
    net_profit: float
    total_weight: float

    clients: List[TripClientResponse]
    created_by: Optional[int] = None
    last_updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    trips: List[TripResponse]
    total: int
    page: int
    page_size: int


class TripDocumentUpload(BaseModel):
    type: TripDocumentType


class StatusBucket(BaseModel):
    count: int
    total_amount: float
    total_commission: float


class TripStatsResponse(BaseModel):
    total_trips: int
    by_status: Dict[str, StatusBucket]
    total_revenue: float
    total_commission: float


class TripDashboardResponse(BaseModel):
    total_trips: int
    by_status: Dict[str, int]
    total_amount: float
    total_paid: float
    total_due: float


class DriverSummaryResponse(BaseModel):
    driver_id: int
    total_trips: int
    active_trips: int
    completed_trips: int
    total_advances: float
    total_expenses: float


class ClientArgestmentRow(BaseModel):
    trip_id: int
    trip_number: str
    client_index: int
    client_id: int
    client_name: Optional[str] = None
    argestment: float
    total_pay_argestment: float


class ArgestmentPayment(BaseModel):
    client_id: int
    amount: float = Field(..., gt=0)


class FleetOwnerStatementRequest(BaseModel):
    fleet_owner_id: int
    filter_type: Optional[str] = Field(None, pattern="^(with_pod|without_pod)$")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None


class FleetOwnerStatementRow(BaseModel):
    trip_id: int
    trip_number: str
    scheduled_date: datetime
    status: TripStatus
    vehicle_owner_amount: float
    total_fleet_advance: float
    total_fleet_expense: float
    pod_paid: float
    pod_pending: float


class FleetOwnerStatementResponse(BaseModel):
    fleet_owner_id: int
    trips: List[FleetOwnerStatementRow]
    total_amount: float
    total_advances: float
    total_expenses: float
    total_pod_paid: float
    total_pod_pending: float
