"""
Driver calculation database model.

A periodic settlement with a driver: kilometres driven times the per-km rate,
plus expenses and the carried balance ("pichla"), minus advances.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class DriverCalculation(Base):
    __tablename__ = "driver_calculations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=True, index=True)
    trip_ids = Column(JSON, nullable=False, default=list)

    old_km = Column(Float, default=0, nullable=False)
    new_km = Column(Float, default=0, nullable=False)
    per_km_rate = Column(Float, default=0, nullable=False)
    pichla = Column(Float, default=0, nullable=False)  # balance carried from the previous calculation

    total_km = Column(Float, default=0, nullable=False)
    km_value = Column(Float, default=0, nullable=False)
    total_expenses = Column(Float, default=0, nullable=False)
    total_advances = Column(Float, default=0, nullable=False)
    total = Column(Float, default=0, nullable=False)
    due = Column(Float, default=0, nullable=False)

    original_trip_data = Column(JSON, nullable=True)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def recalculate(self) -> None:
        """Derive total_km, km_value, total and due from the inputs."""
        self.total_km = max((self.new_km or 0) - (self.old_km or 0), 0)
        self.km_value = self.total_km * (self.per_km_rate or 0)
        self.total = self.km_value + (self.total_expenses or 0) + (self.pichla or 0)
        self.due = self.total - (self.total_advances or 0)

    def __repr__(self):
        return f"<DriverCalculation(id={self.id}, driver_id={self.driver_id}, due={self.due})>"
