"""
Trip memo database model.

Collection memos record money collected from a client on a trip; balance
memos record what is still owed and by when.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, String, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import MemoType


class TripMemo(Base):
    __tablename__ = "trip_memos"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    memo_number = Column(String(30), unique=True, index=True, nullable=False)
    memo_type = Column(Enum(MemoType), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    amount = Column(Float, nullable=False)
    collection_date = Column(DateTime(timezone=True), nullable=True)
    payment_mode = Column(String(50), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TripMemo(id={self.id}, number='{self.memo_number}', type='{self.memo_type.value}')>"
