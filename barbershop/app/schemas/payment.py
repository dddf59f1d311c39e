"""
Payment intent schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from uuid import UUID

from barbershop.app.models.billing_enums import PaymentStatus, PaymentType


class PaymentIntentCreate(BaseModel):
    """Schema for creating a payment intent."""
    client_id: UUID
    amount_cents: int = Field(..., gt=0, description="Amount in cents")
    appointment_id: Optional[UUID] = None
    type: PaymentType = PaymentType.ONE_TIME
    description: Optional[str] = Field(None, max_length=255)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=100)


class PaymentIntentResponse(BaseModel):
    """Schema for payment intent response."""
    id: UUID
    client_id: Optional[UUID]
    appointment_id: Optional[UUID]
    subscription_id: Optional[UUID]
    amount_cents: int
    type: PaymentType
    status: PaymentStatus
    description: Optional[str]
    provider: str
    provider_ref: Optional[str]
    provider_checkout_url: Optional[str]
    provider_pix_code: Optional[str]
    provider_qr_code: Optional[str]
    idempotency_key: str
    paid_at: Optional[datetime]
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
