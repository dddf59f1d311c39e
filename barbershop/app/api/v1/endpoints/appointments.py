"""
Appointment API Endpoints.

Booking is open to every authenticated role; agenda management is staff-only.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import business_tz
from barbershop.app.core.exceptions import ResourceNotFoundError
from barbershop.app.core.guards import require_any_role, require_staff
from barbershop.app.db.session import get_db
from barbershop.app.domain.billing.gateway import BillingGateway, get_billing_gateway
from barbershop.app.domain.billing.payment_service import PaymentService
from barbershop.app.domain.scheduling.appointment_state import AppointmentStateMachine
from barbershop.app.domain.scheduling.availability import local_day_bounds
from barbershop.app.domain.scheduling.booking_service import BookingService
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.service import Service
from barbershop.app.schemas.appointment import (
    AppointmentCancel, AppointmentCompletionResponse, AppointmentCreate,
    AppointmentListResponse, AppointmentReschedule, AppointmentResponse
)
from barbershop.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/appointments", tags=["Appointments"])


async def _audit(db: AsyncSession, action: str, appointment: Appointment, current_user: dict, metadata: dict = None):
    await log_event(
        db=db,
        action=action,
        entity="appointment",
        entity_id=appointment.id,
        actor_id=current_user.get("sub"),
        actor_username=current_user.get("username"),
        metadata=metadata,
    )


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    current_user: dict = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """
    Book an appointment.

    Returns 409 slot_unavailable when the barber is already busy in the
    requested interval.
    """
    appointment = await BookingService.try_book(
        db,
        client_id=payload.client_id,
        barber_id=payload.barber_id,
        service_id=payload.service_id,
        start_time=payload.start_time,
        notes=payload.notes,
    )
    await _audit(db, AuditAction.APPOINTMENT_CREATED, appointment, current_user, {
        "barber_id": str(appointment.barber_id),
        "start_time": appointment.start_time.isoformat(),
    })
    await db.commit()
    await db.refresh(appointment)

    return AppointmentResponse.model_validate(appointment)


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    day: Optional[date] = Query(None, alias="date", description="Local calendar day"),
    barber_id: Optional[UUID] = Query(None),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """List appointments, optionally for one day and/or one barber, in start order."""
    query = select(Appointment)
    if day:
        day_start, day_end = local_day_bounds(day, business_tz())
        query = query.where(Appointment.start_time >= day_start, Appointment.start_time < day_end)
    if barber_id:
        query = query.where(Appointment.barber_id == barber_id)

    result = await db.execute(query.order_by(Appointment.start_time))
    appointments = result.scalars().all()

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        total=len(appointments),
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    appointment = await db.get(Appointment, appointment_id)
    if not appointment:
        raise ResourceNotFoundError("Appointment", appointment_id)
    return AppointmentResponse.model_validate(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: UUID,
    payload: AppointmentReschedule,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Move an appointment; the overlap guard runs again."""
    appointment = await BookingService.reschedule(
        db,
        appointment_id,
        start_time=payload.start_time,
        service_id=payload.service_id,
        barber_id=payload.barber_id,
        notes=payload.notes,
    )
    await _audit(db, AuditAction.APPOINTMENT_RESCHEDULED, appointment, current_user, {
        "barber_id": str(appointment.barber_id),
        "start_time": appointment.start_time.isoformat(),
    })
    await db.commit()
    await db.refresh(appointment)

    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    appointment = await AppointmentStateMachine.confirm(db, appointment_id)
    await _audit(db, AuditAction.APPOINTMENT_CONFIRMED, appointment, current_user)
    await db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_appointment(
    appointment_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    appointment = await AppointmentStateMachine.start(db, appointment_id)
    await _audit(db, AuditAction.APPOINTMENT_STARTED, appointment, current_user)
    await db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentCompletionResponse)
async def complete_appointment(
    appointment_id: UUID,
    charge: bool = Query(False, description="Create a payment intent for the appointment price"),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    gateway: BillingGateway = Depends(get_billing_gateway),
):
    """
    Complete an appointment.

    With charge=true a payment intent for the snapshotted price is created
    after the completion is committed; a provider failure then answers 502
    while the appointment stays completed.
    """
    appointment = await AppointmentStateMachine.complete(db, appointment_id)
    await _audit(db, AuditAction.APPOINTMENT_COMPLETED, appointment, current_user)
    await db.commit()

    response = AppointmentCompletionResponse(appointment=AppointmentResponse.model_validate(appointment))
    if charge:
        service = await db.get(Service, appointment.service_id)
        intent = await PaymentService.create_payment_intent(
            db,
            gateway,
            client_id=appointment.client_id,
            amount_cents=appointment.price_cents,
            appointment_id=appointment.id,
            description=service.name if service else None,
            actor_id=current_user.get("sub"),
        )
        response.payment_intent_id = intent.id
        response.checkout_url = intent.provider_checkout_url

    return response


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    appointment = await AppointmentStateMachine.mark_no_show(db, appointment_id)
    await _audit(db, AuditAction.APPOINTMENT_NO_SHOW, appointment, current_user)
    await db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    payload: Optional[AppointmentCancel] = None,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    reason = payload.cancelled_reason if payload else None
    appointment = await AppointmentStateMachine.cancel(db, appointment_id, reason=reason)
    await _audit(db, AuditAction.APPOINTMENT_CANCELLED, appointment, current_user, {"reason": reason})
    await db.commit()
    return AppointmentResponse.model_validate(appointment)
