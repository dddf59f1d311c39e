"""
Scheduling enumerations.
"""

import enum


class AppointmentStatus(str, enum.Enum):
    """Appointment status enumeration."""
    SCHEDULED = "scheduled"  # Booked, not yet confirmed
    CONFIRMED = "confirmed"  # Confirmed by staff or client
    IN_PROGRESS = "in_progress"  # Client is in the chair
    COMPLETED = "completed"  # Service delivered
    CANCELLED = "cancelled"  # Cancelled before service
    NO_SHOW = "no_show"  # Client did not show up


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})

# Statuses that no longer hold the barber's time
RELEASED_STATUSES = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})
