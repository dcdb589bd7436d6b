"""
Activity log Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity, ActivityStatus


class ActivityLogCreate(BaseModel):
    """Manual log entry (e.g. notes from the back office)."""
    action: str = Field(..., min_length=1, max_length=100)
    category: ActivityCategory
    description: str = Field(..., min_length=1)
    details: Optional[Dict[str, Any]] = None
    related_trip_id: Optional[int] = None
    related_user_id: Optional[int] = None
    related_vehicle_id: Optional[int] = None
    related_payment_id: Optional[int] = None
    severity: ActivitySeverity = ActivitySeverity.LOW
    status: ActivityStatus = ActivityStatus.SUCCESS


class ActivityLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    category: ActivityCategory
    description: str
    details: Optional[Dict[str, Any]] = None
    related_trip_id: Optional[int] = None
    related_user_id: Optional[int] = None
    related_vehicle_id: Optional[int] = None
    related_payment_id: Optional[int] = None
    severity: ActivitySeverity
    status: ActivityStatus
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityLogListResponse(BaseModel):
    """Schema for paginated activity log list."""
    logs: List[ActivityLogResponse]
    total: int
    page: int
    page_size: int


class UserActivitySummary(BaseModel):
    user_id: int
    total: int
    by_category: Dict[str, int]
    by_action: Dict[str, int]


class FinancialActivitySummary(BaseModel):
    total_entries: int
    total_amount: float
    by_action: Dict[str, float]


class BulkDeleteRequest(BaseModel):
    ids: Optional[List[int]] = None
    older_than_days: Optional[int] = Field(None, ge=1)


class BulkDeleteResponse(BaseModel):
    deleted: int
