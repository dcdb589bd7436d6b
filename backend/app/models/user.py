"""
User database model.

One table for every actor: back office admins, fleet owners, clients and drivers.
Role-specific columns are nullable and only meaningful for their role.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Float, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole, AvailabilityStatus


class User(Base):
    """
    User model for authentication and user management.

    Financial ledgers that used to live on the user (advance records, expense
    records, fleet advances...) are read from `trip_ledger_entries` by user_id.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.CLIENT, nullable=False, index=True)
    phone = Column(String(10), nullable=True)
    address = Column(JSON, nullable=True)
    profile_photo = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)

    # Drivers
    status = Column(Enum(AvailabilityStatus), default=AvailabilityStatus.AVAILABLE, nullable=False)
    license_number = Column(String(50), nullable=True)
    license_expiry = Column(DateTime(timezone=True), nullable=True)

    # Fleet owners
    commission_rate = Column(Float, nullable=True)

    # Clients
    gst_number = Column(String(20), nullable=True)
    credit_limit = Column(Float, default=0, nullable=False)
    credit_terms = Column(Integer, nullable=True)
    total_pay_argestment = Column(Float, default=0, nullable=False)

    # Running total of standalone advances
    advance_amount = Column(Float, default=0, nullable=False)

    # Credentials lifecycle
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)
    email_verification_token = Column(String(64), nullable=True, index=True)
    email_verification_expires = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
