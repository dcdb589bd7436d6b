"""
User Pydantic schemas.

Shared by the auth and user management endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List, Dict
from backend.app.models.enums import UserRole, AvailabilityStatus


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = Field(None, pattern=r"^[0-9]{6}$")
    country: Optional[str] = "India"


class UserResponse(BaseModel):
    """Public view of a user; credentials and one-time tokens are never returned."""
    id: int
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    address: Optional[dict] = None
    profile_photo: Optional[str] = None
    is_active: bool
    email_verified: bool
    status: AvailabilityStatus
    license_number: Optional[str] = None
    license_expiry: Optional[datetime] = None
    commission_rate: Optional[float] = None
    gst_number: Optional[str] = None
    credit_limit: float = 0
    credit_terms: Optional[int] = None
    total_pay_argestment: float = 0
    advance_amount: float = 0
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    """Admin-side user creation; any role allowed."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: str = Field(..., pattern=r"^[0-9]{10}$")
    role: UserRole = UserRole.CLIENT
    address: Optional[Address] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)
    gst_number: Optional[str] = Field(None, max_length=20)
    credit_limit: Optional[float] = Field(None, ge=0)
    credit_terms: Optional[int] = Field(None, ge=0)
    license_number: Optional[str] = Field(None, max_length=50)
    license_expiry: Optional[datetime] = None


class UserUpdate(BaseModel):
    """Admin-side update. Password changes go through the auth endpoints."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    role: Optional[UserRole] = None
    address: Optional[Address] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)
    gst_number: Optional[str] = Field(None, max_length=20)
    credit_limit: Optional[float] = Field(None, ge=0)
    credit_terms: Optional[int] = Field(None, ge=0)
    license_number: Optional[str] = Field(None, max_length=50)
    license_expiry: Optional[datetime] = None
    status: Optional[AvailabilityStatus] = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    address: Optional[Address] = None
    gst_number: Optional[str] = Field(None, max_length=20)


class UserListResponse(BaseModel):
    """Schema for paginated user list."""
    users: List[UserResponse]
    total: int
    page: int
    page_size: int


class UserStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: Dict[str, int]
