"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from backend.app.models.enums import UserRole
from backend.app.schemas.user import UserResponse, Address

PHONE_PATTERN = r"^[0-9]{10}$"


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint.
    Default role is CLIENT; ADMIN cannot self-register.
    """
    name: str = Field(..., min_length=1, max_length=100, description="Full name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    phone: str = Field(..., pattern=PHONE_PATTERN, description="10 digit phone number")
    role: Optional[UserRole] = Field(default=UserRole.CLIENT, description="User role (defaults to CLIENT)")
    address: Optional[Address] = None
    gst_number: Optional[str] = Field(None, max_length=20)
    license_number: Optional[str] = Field(None, max_length=50)


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by successful login/register/password operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse


class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8)


class MessageResponse(BaseModel):
    message: str


class TripBalance(BaseModel):
    """One row of a client's outstanding balances."""
    trip_id: int
    trip_number: str
    status: str
    rate: float
    total_rate: float
    paid_amount: float
    due_amount: float
    payment_status: str


class TripBalanceListResponse(BaseModel):
    balances: List[TripBalance]
    total_due: float
    total_paid: float
