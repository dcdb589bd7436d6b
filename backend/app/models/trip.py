"""
Trip database models.

A trip moves goods for one or more clients on one vehicle. Each client on the
trip gets its own TripClient row carrying that client's rate, payments and POD
progress. Trip-level money fields are derived by `domain.trips.financials`.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, JSON, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus, ClientPodStatus, ClientPaymentStatus
from backend.app.models.vehicle_enums import OwnershipType


class Trip(Base):
    """
    Trip model.

    The owner snapshot (ownership_type, owner_id, owner_name, owner_contact,
    commission_rate) is copied from the vehicle at booking time so later edits
    to the vehicle or owner never change historical trips.

    `documents` layout:
        {
            "loading_receipt": {...} | None,
            "delivery_receipt": {...} | None,
            "proof_of_delivery": {url, uploaded_at, uploaded_by, verified_by,
                                  verified_at, status, rejection_reason} | None,
            "invoices": [...],
            "photos": [...]
        }
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_number = Column(String(30), unique=True, index=True, nullable=False)

    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    # Owner snapshot
    ownership_type = Column(Enum(OwnershipType), nullable=False)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    owner_name = Column(String(100), nullable=True)
    owner_contact = Column(String(20), nullable=True)
    commission_rate = Column(Float, default=0, nullable=False)

    # Planning
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    estimated_duration = Column(Float, nullable=True)  # hours
    estimated_distance = Column(Float, nullable=True)  # km
    notes = Column(Text, nullable=True)

    status = Column(Enum(TripStatus), default=TripStatus.BOOKED, nullable=False, index=True)

    # Timeline
    booked_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    billed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Derived financials
    total_client_amount = Column(Float, default=0, nullable=False)
    vehicle_owner_amount = Column(Float, default=0, nullable=False)
    total_commission = Column(Float, default=0, nullable=False)
    total_fleet_advance = Column(Float, default=0, nullable=False)
    total_fleet_expense = Column(Float, default=0, nullable=False)
    pod_balance = Column(Float, default=0, nullable=False)
    pod_balance_total_paid = Column(Float, default=0, nullable=False)
    pod_details = Column(JSON, nullable=True)

    # Trip-level POD progression (same vocabulary as clients)
    pod_status = Column(Enum(ClientPodStatus), default=ClientPodStatus.STARTED, nullable=False)
    pod_date = Column(DateTime(timezone=True), nullable=True)
    pod_document = Column(String(500), nullable=True)

    documents = Column(JSON, nullable=False, default=dict)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    last_updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    clients = relationship(
        "TripClient",
        back_populates="trip",
        order_by="TripClient.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def total_advance(self) -> float:
        return sum(c.paid_amount or 0 for c in self.clients)

    @property
    def total_expenses(self) -> float:
        return sum(c.total_expense or 0 for c in self.clients)

    @property
    def balance_amount(self) -> float:
        return (self.total_client_amount or 0) - self.total_advance

    @property
    def net_profit(self) -> float:
        return (self.total_commission or 0) - self.total_expenses

    @property
    def total_weight(self) -> float:
        return sum(float((c.load_details or {}).get("weight") or 0) for c in self.clients)

    @property
    def proof_of_delivery(self):
        return (self.documents or {}).get("proof_of_delivery")

    def __repr__(self):
        return f"<Trip(id={self.id}, number='{self.trip_number}', status='{self.status.value}')>"


class TripClient(Base):
    """
    One client's share of a trip.

    `position` is the client's index on the trip; ledger endpoints address
    clients by this index.
    """
    __tablename__ = "trip_clients"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    load_details = Column(JSON, nullable=False)
    origin = Column(JSON, nullable=False)
    destination = Column(JSON, nullable=False)

    # Money
    rate = Column(Float, nullable=False)
    total_rate = Column(Float, default=0, nullable=False)
    paid_amount = Column(Float, default=0, nullable=False)
    due_amount = Column(Float, default=0, nullable=False)
    total_expense = Column(Float, default=0, nullable=False)
    truck_hire_cost = Column(Float, default=0, nullable=False)
    commission = Column(Float, default=0, nullable=False)
    argestment = Column(Float, default=0, nullable=False)
    payment_status = Column(Enum(ClientPaymentStatus), default=ClientPaymentStatus.PENDING, nullable=False)

    # Invoicing
    invoice_generated = Column(Boolean, default=False, nullable=False)
    invoice_number = Column(String(50), nullable=True)
    invoice_date = Column(DateTime(timezone=True), nullable=True)

    load_number = Column(String(50), nullable=True)
    load_date = Column(DateTime(timezone=True), nullable=True)

    # POD progression
    pod_status = Column(Enum(ClientPodStatus), default=ClientPodStatus.STARTED, nullable=False)
    pod_date = Column(DateTime(timezone=True), nullable=True)
    pod_document = Column(String(500), nullable=True)
    documents = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="clients")

    def __repr__(self):
        return f"<TripClient(id={self.id}, trip_id={self.trip_id}, client_id={self.client_id}, due={self.due_amount})>"
