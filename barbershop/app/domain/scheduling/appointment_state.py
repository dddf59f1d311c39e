"""
Appointment State Machine.

scheduled -> confirmed -> in_progress -> completed
any non-terminal -> cancelled | no_show

Every transition is a single-row conditional UPDATE guarded by the
current status, so two concurrent transitions cannot both apply.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import utcnow
from barbershop.app.core.exceptions import ResourceNotFoundError, InvalidTransitionError
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.scheduling_enums import AppointmentStatus, TERMINAL_STATUSES

_NON_TERMINAL = frozenset(AppointmentStatus) - TERMINAL_STATUSES

# target status -> (allowed source statuses, timestamp column stamped)
TRANSITIONS = {
    AppointmentStatus.CONFIRMED: (frozenset({AppointmentStatus.SCHEDULED}), "confirmed_at"),
    AppointmentStatus.IN_PROGRESS: (
        frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}),
        "started_at",
    ),
    AppointmentStatus.COMPLETED: (
        frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS}),
        "completed_at",
    ),
    AppointmentStatus.CANCELLED: (_NON_TERMINAL, "cancelled_at"),
    AppointmentStatus.NO_SHOW: (_NON_TERMINAL, "no_show_at"),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    allowed, _ = TRANSITIONS.get(target, (frozenset(), None))
    return current in allowed


class AppointmentStateMachine:

    @staticmethod
    async def transition(
        db: AsyncSession,
        appointment_id: UUID,
        target: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Apply a guarded status transition.

        Args:
            db: Database session (caller commits)
            appointment_id: Appointment to move
            target: Desired status
            reason: Cancellation reason (only stored for CANCELLED)

        Returns:
            The refreshed appointment

        Raises:
            ResourceNotFoundError: Unknown appointment
            InvalidTransitionError: Current status does not allow the move
        """
        if target not in TRANSITIONS:
            raise InvalidTransitionError("any", target.value)

        allowed, stamp_column = TRANSITIONS[target]
        now = utcnow()
        values = {"status": target, stamp_column: now, "updated_at": now}
        if target == AppointmentStatus.CANCELLED:
            values["cancelled_reason"] = reason

        result = await db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status.in_(list(allowed)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            appointment = await db.get(Appointment, appointment_id, populate_existing=True)
            if not appointment:
                raise ResourceNotFoundError("Appointment", appointment_id)
            raise InvalidTransitionError(appointment.status.value, target.value)

        await db.flush()
        return await db.get(Appointment, appointment_id, populate_existing=True)

    @staticmethod
    async def confirm(db: AsyncSession, appointment_id: UUID) -> Appointment:
        return await AppointmentStateMachine.transition(db, appointment_id, AppointmentStatus.CONFIRMED)

    @staticmethod
    async def start(db: AsyncSession, appointment_id: UUID) -> Appointment:
        return await AppointmentStateMachine.transition(db, appointment_id, AppointmentStatus.IN_PROGRESS)

    @staticmethod
    async def complete(db: AsyncSession, appointment_id: UUID) -> Appointment:
        return await AppointmentStateMachine.transition(db, appointment_id, AppointmentStatus.COMPLETED)

    @staticmethod
    async def cancel(db: AsyncSession, appointment_id: UUID, reason: Optional[str] = None) -> Appointment:
        return await AppointmentStateMachine.transition(
            db, appointment_id, AppointmentStatus.CANCELLED, reason=reason
        )

    @staticmethod
    async def mark_no_show(db: AsyncSession, appointment_id: UUID) -> Appointment:
        return await AppointmentStateMachine.transition(db, appointment_id, AppointmentStatus.NO_SHOW)
