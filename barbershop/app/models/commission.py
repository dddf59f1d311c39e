"""
Commission database model.
"""

import uuid

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Numeric, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.billing_enums import CommissionStatus


class Commission(Base):
    """
    Commission model.

    At most one commission per payment intent; each one is paired with a
    debit ledger entry that references it.
    """
    __tablename__ = "commissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    barber_id = Column(Uuid, ForeignKey('barbers.id'), nullable=False, index=True)
    appointment_id = Column(Uuid, ForeignKey('appointments.id'), nullable=True, index=True)
    payment_intent_id = Column(Uuid, ForeignKey('payment_intents.id'), nullable=True, unique=True)

    # Financials
    base_amount_cents = Column(Integer, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    commission_amount_cents = Column(Integer, nullable=False)

    status = Column(
        Enum(CommissionStatus, name="commission_status", values_callable=enum_values),
        default=CommissionStatus.PENDING,
        nullable=False,
        index=True,
    )

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Commission(id={self.id}, barber_id={self.barber_id}, amount_cents={self.commission_amount_cents})>"
