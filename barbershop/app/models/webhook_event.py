"""
Webhook Event database model.

Audit trail and idempotency ledger for provider callbacks.
"""

import uuid

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, JSON, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.billing_enums import WebhookStatus


class WebhookEvent(Base):
    """
    Webhook Event model.

    (provider, provider_event_id) is unique: it is the idempotency key of
    the whole webhook pipeline. Rows are updated in place on reprocessing
    and never deleted.
    """
    __tablename__ = "webhook_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    provider = Column(String(50), nullable=False)
    provider_event_id = Column(String(150), nullable=False)
    event_type = Column(String(100), nullable=False, index=True)

    # Raw delivery
    payload = Column(JSON, nullable=False)
    headers = Column(JSON, nullable=True)
    signature = Column(String(255), nullable=True)
    signature_valid = Column(Boolean, nullable=True)

    # Processing
    status = Column(
        Enum(WebhookStatus, name="webhook_status", values_callable=enum_values),
        default=WebhookStatus.RECEIVED,
        nullable=False,
        index=True,
    )
    retry_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("provider", "provider_event_id", name="uq_webhook_events_provider_event"),
    )

    def __repr__(self):
        return f"<WebhookEvent(provider='{self.provider}', event_id='{self.provider_event_id}', status='{self.status.value}')>"
