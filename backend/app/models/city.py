"""
City lookup table used by the trip origin/destination pickers.
"""

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class City(Base):
    __tablename__ = "cities"
    __table_args__ = (UniqueConstraint("city", "state", name="uq_city_state"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    city = Column(String(100), nullable=False, index=True)
    state = Column(String(100), default="NA", nullable=False)
    pincode = Column(String(6), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<City(id={self.id}, city='{self.city}', state='{self.state}')>"
