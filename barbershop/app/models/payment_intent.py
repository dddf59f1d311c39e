"""
Payment Intent database model.

One local record per charge attempt at the billing provider.
"""

import uuid

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.billing_enums import PaymentStatus, PaymentType


class PaymentIntent(Base):
    """
    Payment Intent model.

    PENDING -> PROCESSING -> PAID | FAILED | REFUNDED | CANCELLED | EXPIRED.
    idempotency_key guards against creating the same intent twice;
    provider_ref is the provider's billing id used to correlate webhooks.
    Only status and paid_at change after the billing is created.
    """
    __tablename__ = "payment_intents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Linkage
    client_id = Column(Uuid, ForeignKey('clients.id'), nullable=True, index=True)
    appointment_id = Column(Uuid, ForeignKey('appointments.id'), nullable=True, index=True)
    subscription_id = Column(Uuid, ForeignKey('subscriptions.id'), nullable=True, index=True)

    # Financials
    amount_cents = Column(Integer, nullable=False)
    type = Column(
        Enum(PaymentType, name="payment_type", values_callable=enum_values),
        default=PaymentType.ONE_TIME,
        nullable=False,
    )
    status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=True)

    # Provider
    provider = Column(String(50), nullable=False, default="abacatepay")
    provider_ref = Column(String(100), nullable=True, unique=True, index=True)
    provider_checkout_url = Column(String(500), nullable=True)
    provider_pix_code = Column(Text, nullable=True)
    provider_qr_code = Column(Text, nullable=True)
    idempotency_key = Column(String(100), nullable=False, unique=True)

    # Timestamps
    paid_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentIntent(id={self.id}, status='{self.status.value}', amount_cents={self.amount_cents})>"
