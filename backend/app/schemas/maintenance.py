"""
Maintenance Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.maintenance import MaintenanceType, MaintenanceStatus, MaintenancePriority


class ServiceProvider(BaseModel):
    name: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None


class ReplacedPart(BaseModel):
    name: str
    quantity: int = Field(1, ge=1)
    cost: float = Field(0, ge=0)


class MaintenanceCreate(BaseModel):
    vehicle_id: int
    maintenance_type: MaintenanceType
    description: str = Field(..., min_length=1)
    service_provider: Optional[ServiceProvider] = None
    labor_cost: float = Field(0, ge=0)
    parts_cost: float = Field(0, ge=0)
    other_cost: float = Field(0, ge=0)
    parts_replaced: List[ReplacedPart] = []
    scheduled_date: datetime
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    odometer_reading: Optional[float] = Field(None, ge=0)
    next_service_km: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceUpdate(BaseModel):
    maintenance_type: Optional[MaintenanceType] = None
    description: Optional[str] = Field(None, min_length=1)
    service_provider: Optional[ServiceProvider] = None
    labor_cost: Optional[float] = Field(None, ge=0)
    parts_cost: Optional[float] = Field(None, ge=0)
    other_cost: Optional[float] = Field(None, ge=0)
    parts_replaced: Optional[List[ReplacedPart]] = None
    scheduled_date: Optional[datetime] = None
    status: Optional[MaintenanceStatus] = None
    priority: Optional[MaintenancePriority] = None
    odometer_reading: Optional[float] = Field(None, ge=0)
    next_service_km: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceComplete(BaseModel):
    labor_cost: Optional[float] = Field(None, ge=0)
    parts_cost: Optional[float] = Field(None, ge=0)
    other_cost: Optional[float] = Field(None, ge=0)
    odometer_reading: Optional[float] = Field(None, ge=0)
    next_service_km: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceResponse(BaseModel):
    id: int
    vehicle_id: int
    maintenance_type: MaintenanceType
    description: str
    service_provider: Optional[Dict[str, Any]] = None
    labor_cost: float
    parts_cost: float
    other_cost: float
    total_cost: float
    parts_replaced: List[Dict[str, Any]] = []
    scheduled_date: datetime
    completed_date: Optional[datetime] = None
    status: MaintenanceStatus
    priority: MaintenancePriority
    odometer_reading: Optional[float] = None
    next_service_km: Optional[float] = None
    documents: List[Dict[str, Any]] = []
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MaintenanceListResponse(BaseModel):
    """Schema for paginated maintenance list."""
    records: List[MaintenanceResponse]
    total: int
    page: int
    page_size: int


class MaintenanceStatsResponse(BaseModel):
    total_records: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    total_cost: float
    labor_cost: float
    parts_cost: float
    other_cost: float
