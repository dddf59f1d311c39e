"""
Business settings database model.

Singleton row holding the shop's opening hours and slot granularity.
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Time, JSON, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base


class BusinessSettings(Base):
    """
    Business settings model.

    Only one row is expected. working_days holds weekday numbers
    with 0 = Sunday through 6 = Saturday.
    """
    __tablename__ = "business_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    barbershop_name = Column(String(150), nullable=False, default="Barbearia")

    opening_time = Column(Time, nullable=False)
    closing_time = Column(Time, nullable=False)
    working_days = Column(JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5, 6])
    slot_duration_minutes = Column(Integer, nullable=False, default=30)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<BusinessSettings(opening={self.opening_time}, closing={self.closing_time}, slot={self.slot_duration_minutes})>"
