"""
Standalone advance database model.

Cash handed to a user outside the trip ledgers; keeps User.advance_amount in step.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, String
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Advance(Base):
    __tablename__ = "advances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    reason = Column(String(255), nullable=True)
    paid_by = Column(String(100), nullable=True)
    payment_type = Column(String(50), default="cash", nullable=False)
    type = Column(String(20), default="credit", nullable=False)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Advance(id={self.id}, user_id={self.user_id}, amount={self.amount})>"
