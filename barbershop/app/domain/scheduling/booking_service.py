"""
Booking Conflict Guard.

Re-validates a barber's availability at write time. The availability
screen may be stale by the time a booking is submitted, so the overlap
check runs again here, and the storage constraints on the appointments
table remain the final word when two writers race.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import ensure_utc
from barbershop.app.core.exceptions import (
    ResourceNotFoundError, SlotUnavailableError, InvalidTransitionError
)
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.barber import Barber
from barbershop.app.models.client import Client
from barbershop.app.models.service import Service
from barbershop.app.models.scheduling_enums import (
    AppointmentStatus, RELEASED_STATUSES, TERMINAL_STATUSES
)

logger = logging.getLogger("barbershop.booking")


class BookingService:

    @staticmethod
    async def find_overlapping(
        db: AsyncSession,
        barber_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Appointment]:
        """
        Return one active appointment of the barber overlapping [start_time, end_time), if any.
        """
        query = select(Appointment).where(
            Appointment.barber_id == barber_id,
            Appointment.status.notin_(list(RELEASED_STATUSES)),
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)

        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def _load_bookable(db: AsyncSession, barber_id: UUID, service_id: UUID) -> tuple[Barber, Service]:
        barber = await db.get(Barber, barber_id)
        if not barber or not barber.is_active:
            raise ResourceNotFoundError("Barber", barber_id)

        service = await db.get(Service, service_id)
        if not service or not service.is_active:
            raise ResourceNotFoundError("Service", service_id)

        return barber, service

    @staticmethod
    async def try_book(
        db: AsyncSession,
        client_id: UUID,
        barber_id: UUID,
        service_id: UUID,
        start_time: datetime,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Book an appointment if the barber is free.

        Flow:
        1. Validate client, barber and service
        2. end_time = start_time + service duration, price snapshot
        3. Overlap check against active appointments
        4. Insert (flush); a storage constraint violation means another
           writer won the slot

        Args:
            db: Database session (caller commits)
            client_id: Client being booked
            barber_id: Barber to book
            service_id: Service to perform
            start_time: Requested start
            notes: Free-text notes

        Returns:
            The new SCHEDULED appointment

        Raises:
            ResourceNotFoundError: Unknown client, barber or service
            SlotUnavailableError: The interval overlaps an active appointment
        """
        client = await db.get(Client, client_id)
        if not client:
            raise ResourceNotFoundError("Client", client_id)

        _, service = await BookingService._load_bookable(db, barber_id, service_id)

        start = ensure_utc(start_time)
        end = start + timedelta(minutes=service.duration_minutes)

        conflict = await BookingService.find_overlapping(db, barber_id, start, end)
        if conflict:
            logger.info("Slot %s-%s unavailable for barber %s (conflicts with %s)", start, end, barber_id, conflict.id)
            raise SlotUnavailableError(barber_id)

        appointment = Appointment(
            client_id=client_id,
            barber_id=barber_id,
            service_id=service_id,
            start_time=start,
            end_time=end,
            status=AppointmentStatus.SCHEDULED,
            price_cents=service.price_cents,
            notes=notes,
        )
        db.add(appointment)

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning("Storage constraint rejected overlapping booking for barber %s at %s", barber_id, start)
            raise SlotUnavailableError(barber_id)

        return appointment

    @staticmethod
    async def reschedule(
        db: AsyncSession,
        appointment_id: UUID,
        start_time: Optional[datetime] = None,
        service_id: Optional[UUID] = None,
        barber_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to another time, barber or service.

        end_time and price_cents are recomputed from the (possibly new)
        service and the overlap guard runs again, ignoring the appointment
        itself.
        """
        appointment = await db.get(Appointment, appointment_id)
        if not appointment:
            raise ResourceNotFoundError("Appointment", appointment_id)

        if appointment.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(appointment.status.value, "rescheduled")

        new_barber_id = barber_id or appointment.barber_id
        new_service_id = service_id or appointment.service_id
        _, service = await BookingService._load_bookable(db, new_barber_id, new_service_id)

        start = ensure_utc(start_time) if start_time else ensure_utc(appointment.start_time)
        end = start + timedelta(minutes=service.duration_minutes)

        conflict = await BookingService.find_overlapping(
            db, new_barber_id, start, end, exclude_id=appointment.id
        )
        if conflict:
            raise SlotUnavailableError(new_barber_id)

        appointment.barber_id = new_barber_id
        appointment.service_id = new_service_id
        appointment.start_time = start
        appointment.end_time = end
        appointment.price_cents = service.price_cents
        if notes is not None:
            appointment.notes = notes

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise SlotUnavailableError(new_barber_id)

        return appointment
