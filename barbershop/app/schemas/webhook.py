"""
Webhook Schemas.

Envelope sent by the billing provider:
{"event": "billing.paid", "data": {"id": ..., "status": ..., "amount": ...}}
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any


class WebhookCustomer(BaseModel):
    class Config:
        extra = "allow"

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    cellphone: Optional[str] = None


class WebhookBillingData(BaseModel):
    """Billing or subscription object carried by an event."""
    class Config:
        extra = "allow"
        populate_by_name = True

    id: str = Field(..., min_length=1)
    status: Optional[str] = None
    amount: Optional[int] = None
    paid_amount: Optional[int] = Field(None, alias="paidAmount")
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    metadata: Optional[Dict[str, Any]] = None
    customer: Optional[WebhookCustomer] = None


class WebhookEnvelope(BaseModel):
    class Config:
        extra = "allow"

    id: Optional[str] = None
    event: str = Field(..., min_length=1)
    data: WebhookBillingData

    @property
    def provider_event_id(self) -> str:
        """
        Deduplication key of the delivery.

        The provider's own event id when present; otherwise the event type
        plus the billing id, so a billing's paid and refunded events are
        not mistaken for duplicates of each other.
        """
        if self.id:
            return self.id
        return f"{self.event}:{self.data.id}"
