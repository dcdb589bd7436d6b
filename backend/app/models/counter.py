"""
Counter database model.

One row per named sequence (trip, pay, collectionMemo, ...).
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum
from backend.app.db.session import Base


class ResetPeriod(str, enum.Enum):
    """How often a sequence restarts at 1."""
    NONE = "none"
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Counter(Base):
    """Named monotonically increasing sequence used for human-readable numbers."""
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    sequence = Column(Integer, default=0, nullable=False)
    prefix = Column(String(20), default="", nullable=False)
    suffix = Column(String(20), default="", nullable=False)
    pad_length = Column(Integer, default=4, nullable=False)
    last_reset = Column(DateTime(timezone=True), nullable=False)
    reset_period = Column(Enum(ResetPeriod), default=ResetPeriod.NONE, nullable=False)

    def __repr__(self):
        return f"<Counter(name='{self.name}', sequence={self.sequence})>"
