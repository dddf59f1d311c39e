"""
Appointment Pydantic schemas.

Defines request and response models for booking and the appointment lifecycle.
"""

from pydantic import AwareDatetime, BaseModel, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from barbershop.app.models.scheduling_enums import AppointmentStatus


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    client_id: UUID
    barber_id: UUID
    service_id: UUID
    start_time: AwareDatetime = Field(..., description="Start instant with UTC offset")
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment. Omitted fields keep their value."""
    start_time: Optional[AwareDatetime] = None
    barber_id: Optional[UUID] = None
    service_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""
    cancelled_reason: Optional[str] = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""
    id: UUID
    client_id: UUID
    barber_id: UUID
    service_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    price_cents: int
    notes: Optional[str]
    confirmed_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancelled_reason: Optional[str]
    no_show_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AppointmentCompletionResponse(BaseModel):
    """Completed appointment plus the payment intent created for it, if charged."""
    appointment: AppointmentResponse
    payment_intent_id: Optional[UUID] = None
    checkout_url: Optional[str] = None


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    total: int
