"""
Proof-of-delivery Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.trip_enums import ClientPodStatus


class PodVerification(BaseModel):
    action: str = Field(..., pattern="^(verify|reject)$")
    reason: Optional[str] = None


class ClientPodStatusUpdate(BaseModel):
    status: ClientPodStatus
    date: Optional[datetime] = None


class TripPodStatusUpdate(BaseModel):
    status: ClientPodStatus


class PodReportRow(BaseModel):
    trip_id: int
    trip_number: str
    client_index: int
    client_id: int
    pod_status: ClientPodStatus
    pod_date: Optional[datetime] = None
    pod_document: Optional[str] = None
    due_amount: float


class PodReportResponse(BaseModel):
    pending: List[PodReportRow]
    submitted: List[PodReportRow]
