"""
General expense database model.

Office and vehicle expenses that are not booked against a trip.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, String, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    amount = Column(Float, nullable=False)
    type = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Expense(id={self.id}, type='{self.type}', amount={self.amount})>"
