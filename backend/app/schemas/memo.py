"""
Trip memo Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.trip_enums import MemoType


class MemoCreate(BaseModel):
    amount: float = Field(..., gt=0)
    client_id: Optional[int] = None
    collection_date: Optional[datetime] = None
    payment_mode: Optional[str] = Field(None, max_length=50)
    due_date: Optional[datetime] = None
    remarks: Optional[str] = None


class MemoUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    collection_date: Optional[datetime] = None
    payment_mode: Optional[str] = Field(None, max_length=50)
    due_date: Optional[datetime] = None
    remarks: Optional[str] = None


class MemoResponse(BaseModel):
    id: int
    memo_number: str
    memo_type: MemoType
    trip_id: int
    client_id: Optional[int] = None
    amount: float
    collection_date: Optional[datetime] = None
    payment_mode: Optional[str] = None
    due_date: Optional[datetime] = None
    remarks: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MemoListResponse(BaseModel):
    memos: List[MemoResponse]
    total_amount: float
