"""
Subscription database model.
"""

import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.billing_enums import SubscriptionStatus


class Subscription(Base):
    """Monthly plan of a client, billed by the provider."""
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid, ForeignKey('clients.id'), nullable=False, index=True)

    plan_name = Column(String(150), nullable=False)
    monthly_price_cents = Column(Integer, nullable=False)

    status = Column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=enum_values),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    provider_subscription_id = Column(String(100), nullable=True, unique=True, index=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Subscription(id={self.id}, plan='{self.plan_name}', status='{self.status.value}')>"
