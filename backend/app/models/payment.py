"""
Payment database model.

Money moving between the brokerage, clients and fleet owners for a trip.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, String, JSON, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.payment_enums import PaymentType, PaymentStatus, PaymentMethod


class Payment(Base):
    """
    Payment model.

    Critical fields (trip_id, amount, payment_type, paid_by_id, paid_to_id)
    are fixed once recorded; corrections go through cancel + new payment.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_number = Column(String(30), unique=True, index=True, nullable=False)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_type = Column(Enum(PaymentType), nullable=False, index=True)
    paid_by_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    paid_to_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    transaction_details = Column(JSON, nullable=True)

    payment_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)

    commission_amount = Column(Float, default=0, nullable=False)
    tax_details = Column(JSON, nullable=True)  # {gst, tds, net_amount}
    notes = Column(Text, nullable=True)

    approved_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, number='{self.payment_number}', amount={self.amount}, status='{self.status.value}')>"
