"""
Availability Calculator.

Works out which start times a barber can still offer on a given day.
compute_slots is a pure function of its inputs; get_available_slots loads
those inputs from the database.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from zoneinfo import ZoneInfo

from barbershop.app.core.clock import business_tz, ensure_utc
from barbershop.app.core.exceptions import ResourceNotFoundError
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.barber import Barber
from barbershop.app.models.business_settings import BusinessSettings
from barbershop.app.models.scheduling_enums import AppointmentStatus, RELEASED_STATUSES


@dataclass(frozen=True)
class SlotSettings:
    """Opening hours and offer granularity, injected into the calculator."""
    opening_time: time
    closing_time: time
    working_days: FrozenSet[int]
    slot_duration_minutes: int

    def __post_init__(self):
        if self.opening_time >= self.closing_time:
            raise ValueError("opening_time must be before closing_time")
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be positive")
        if any(day < 0 or day > 6 for day in self.working_days):
            raise ValueError("working_days must be weekday numbers between 0 and 6")

    @classmethod
    def from_model(cls, row: BusinessSettings) -> "SlotSettings":
        return cls(
            opening_time=row.opening_time,
            closing_time=row.closing_time,
            working_days=frozenset(int(day) for day in row.working_days or []),
            slot_duration_minutes=row.slot_duration_minutes,
        )


@dataclass(frozen=True)
class Booking:
    """An existing appointment interval [start, end)."""
    start: datetime
    end: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    barber_id: Optional[UUID] = None


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap test."""
    return start_a < end_b and end_a > start_b


def weekday_number(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def compute_slots(
    barber_id: Optional[UUID],
    day: date,
    service_duration_minutes: int,
    settings: SlotSettings,
    existing_bookings: Iterable[Booking],
    tz: Optional[ZoneInfo] = None,
) -> List[Slot]:
    """
    Compute the bookable slots of a barber for one day.

    Candidates start at opening_time and advance by slot_duration_minutes
    while they start before closing_time. A candidate is kept when it ends
    no later than closing_time and does not overlap an active booking.

    Args:
        barber_id: Barber the bookings belong to (bookings tagged with another barber are ignored)
        day: Local calendar day
        service_duration_minutes: Length of the requested service
        settings: Opening hours, working days and granularity
        existing_bookings: Bookings of the barber on that day
        tz: Business timezone the opening hours are expressed in (UTC if omitted)

    Returns:
        Ascending list of slots with UTC start/end. Empty on non-working days.
    """
    if service_duration_minutes <= 0:
        raise ValueError("service_duration_minutes must be positive")

    if weekday_number(day) not in settings.working_days:
        return []

    tz = tz or timezone.utc
    busy = [
        (ensure_utc(b.start), ensure_utc(b.end))
        for b in existing_bookings
        if b.status not in RELEASED_STATUSES
        and (barber_id is None or b.barber_id is None or b.barber_id == barber_id)
    ]

    step = timedelta(minutes=settings.slot_duration_minutes)
    duration = timedelta(minutes=service_duration_minutes)
    current = datetime.combine(day, settings.opening_time, tzinfo=tz)
    closing = datetime.combine(day, settings.closing_time, tzinfo=tz)

    slots: List[Slot] = []
    while current < closing:
        candidate_end = current + duration
        if candidate_end <= closing:
            start_utc = current.astimezone(timezone.utc)
            end_utc = candidate_end.astimezone(timezone.utc)
            if not any(overlaps(start_utc, end_utc, b_start, b_end) for b_start, b_end in busy):
                slots.append(Slot(start=start_utc, end=end_utc))
        current += step

    return slots


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds [start, end) of a local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def load_slot_settings(db: AsyncSession) -> Optional[SlotSettings]:
    result = await db.execute(select(BusinessSettings).limit(1))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return SlotSettings.from_model(row)


async def get_available_slots(
    db: AsyncSession,
    barber_id: UUID,
    day: date,
    duration_minutes: int,
) -> List[Slot]:
    """
    Availability query used by the booking screens.

    Raises:
        ResourceNotFoundError: If the barber does not exist or is inactive
    """
    barber = await db.get(Barber, barber_id)
    if not barber or not barber.is_active:
        raise ResourceNotFoundError("Barber", barber_id)

    slot_settings = await load_slot_settings(db)
    if slot_settings is None:
        return []

    tz = business_tz()
    day_start, day_end = local_day_bounds(day, tz)

    result = await db.execute(
        select(Appointment).where(
            Appointment.barber_id == barber_id,
            Appointment.status.notin_(list(RELEASED_STATUSES)),
            Appointment.start_time < day_end,
            Appointment.end_time > day_start,
        )
    )
    bookings = [
        Booking(start=a.start_time, end=a.end_time, status=a.status, barber_id=a.barber_id)
        for a in result.scalars().all()
    ]

    return compute_slots(barber_id, day, duration_minutes, slot_settings, bookings, tz=tz)
