"""
Trip ledger entry database model.

Every advance or expense booked against a trip is one row here. User and
vehicle ledgers are views over this table, so one event is stored once.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, String, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import LedgerKind, Beneficiary


class TripLedgerEntry(Base):
    """
    Ledger entry model.

    `trip_client_id` is set for client advances/expenses only.
    `user_id` / `vehicle_id` point at the party the entry is booked against
    (client, fleet owner, driver or vehicle) and drive the derived views.
    """
    __tablename__ = "trip_ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)
    trip_client_id = Column(Integer, ForeignKey('trip_clients.id', ondelete="CASCADE"), nullable=True, index=True)
    kind = Column(Enum(LedgerKind), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    reason = Column(String(255), nullable=True)
    category = Column(String(50), nullable=True)
    purpose = Column(String(50), nullable=True)
    payment_method = Column(String(50), nullable=True)
    paid_by = Column(String(50), nullable=True)
    paid_to = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    reference_number = Column(String(100), nullable=True)
    recipient_name = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    beneficiary = Column(Enum(Beneficiary), nullable=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=True, index=True)

    paid_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TripLedgerEntry(id={self.id}, trip_id={self.trip_id}, kind='{self.kind.value}', amount={self.amount})>"
