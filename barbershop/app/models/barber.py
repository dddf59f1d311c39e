"""
Barber database model.
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Numeric, CheckConstraint, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base


class Barber(Base):
    """
    Barber model.

    commission_percentage is the share (0-100) of each paid service
    that is owed to the barber.
    """
    __tablename__ = "barbers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_barbers_commission_percentage_range",
        ),
    )

    def __repr__(self):
        return f"<Barber(id={self.id}, name='{self.name}', commission={self.commission_percentage})>"
