"""
Service (catalog item) database model.
"""

import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, CheckConstraint, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base


class Service(Base):
    """
    Service offered by the shop (haircut, beard, ...).

    Price and duration are copied onto each appointment when it is booked,
    so later edits here never change existing appointments.
    """
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    price_cents = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        CheckConstraint("price_cents >= 0", name="ck_services_price_non_negative"),
    )

    def __repr__(self):
        return f"<Service(id={self.id}, name='{self.name}', price_cents={self.price_cents})>"
