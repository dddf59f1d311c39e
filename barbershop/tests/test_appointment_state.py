"""
Appointment State Machine Tests.
"""

import uuid
from datetime import datetime, timezone

import pytest

from barbershop.app.core.exceptions import InvalidTransitionError, ResourceNotFoundError
from barbershop.app.domain.scheduling.appointment_state import AppointmentStateMachine, can_transition
from barbershop.app.domain.scheduling.booking_service import BookingService
from barbershop.app.models.scheduling_enums import AppointmentStatus, TERMINAL_STATUSES

START = datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc)


@pytest.fixture
async def appointment(db_session, shop):
    booked = await BookingService.try_book(
        db_session, shop["client"].id, shop["barber"].id, shop["service"].id, START
    )
    await db_session.commit()
    return booked


def test_transition_table():
    assert can_transition(AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
    assert can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS)
    assert can_transition(AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED)
    assert can_transition(AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED)
    assert not can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.CONFIRMED)
    assert not can_transition(AppointmentStatus.IN_PROGRESS, AppointmentStatus.CONFIRMED)
    assert not can_transition(AppointmentStatus.SCHEDULED, AppointmentStatus.SCHEDULED)


def test_terminal_states_have_no_exit():
    for terminal in TERMINAL_STATUSES:
        for target in AppointmentStatus:
            assert not can_transition(terminal, target)


@pytest.mark.asyncio
async def test_happy_path_stamps_each_step(db_session, appointment):
    confirmed = await AppointmentStateMachine.confirm(db_session, appointment.id)
    assert confirmed.status == AppointmentStatus.CONFIRMED
    assert confirmed.confirmed_at is not None

    started = await AppointmentStateMachine.start(db_session, appointment.id)
    assert started.status == AppointmentStatus.IN_PROGRESS
    assert started.started_at is not None

    completed = await AppointmentStateMachine.complete(db_session, appointment.id)
    await db_session.commit()
    assert completed.status == AppointmentStatus.COMPLETED
    assert completed.completed_at is not None


@pytest.mark.asyncio
async def test_cancel_records_reason(db_session, appointment):
    cancelled = await AppointmentStateMachine.cancel(db_session, appointment.id, reason="Sick")
    await db_session.commit()

    assert cancelled.status == AppointmentStatus.CANCELLED
    assert cancelled.cancelled_reason == "Sick"
    assert cancelled.cancelled_at is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("finish", ["complete", "cancel", "mark_no_show"])
async def test_terminal_appointment_never_changes(db_session, appointment, finish):
    await getattr(AppointmentStateMachine, finish)(db_session, appointment.id)
    await db_session.commit()

    for move in ("confirm", "start", "complete", "cancel", "mark_no_show"):
        with pytest.raises(InvalidTransitionError) as exc_info:
            await getattr(AppointmentStateMachine, move)(db_session, appointment.id)
        assert exc_info.value.error_code == "invalid_transition"


@pytest.mark.asyncio
async def test_confirm_twice_is_rejected(db_session, appointment):
    await AppointmentStateMachine.confirm(db_session, appointment.id)
    await db_session.commit()

    with pytest.raises(InvalidTransitionError):
        await AppointmentStateMachine.confirm(db_session, appointment.id)


@pytest.mark.asyncio
async def test_unknown_appointment(db_session, shop):
    with pytest.raises(ResourceNotFoundError):
        await AppointmentStateMachine.confirm(db_session, uuid.uuid4())
