"""
Appointment database model.

A barber can never hold two active appointments whose [start, end)
intervals overlap. The application checks this before inserting, and the
database enforces it:

* PostgreSQL: EXCLUDE USING gist on (barber_id, tstzrange(start, end))
* SQLite: BEFORE INSERT / BEFORE UPDATE triggers aborting on an overlap
  (SQLite serialises writers, so the trigger sees every committed row)
* every backend: partial unique index on (barber_id, start_time)
"""

import uuid

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, DateTime, Enum, Index, DDL, Uuid, event, text
)
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.scheduling_enums import AppointmentStatus

ACTIVE_APPOINTMENT_CLAUSE = "status NOT IN ('cancelled', 'no_show')"


class Appointment(Base):
    """
    Appointment model.

    Created in SCHEDULED. Terminal states: COMPLETED, CANCELLED, NO_SHOW.
    end_time and price_cents are snapshots of the service at booking time.
    """
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Parties
    client_id = Column(Uuid, ForeignKey('clients.id'), nullable=False, index=True)
    barber_id = Column(Uuid, ForeignKey('barbers.id'), nullable=False, index=True)
    service_id = Column(Uuid, ForeignKey('services.id'), nullable=False)

    # Interval [start_time, end_time)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        Enum(AppointmentStatus, name="appointment_status", values_callable=enum_values),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    price_cents = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # Transition stamps
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_reason = Column(String(500), nullable=True)
    no_show_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index(
            "uq_appointments_barber_start_active",
            "barber_id",
            "start_time",
            unique=True,
            sqlite_where=text(ACTIVE_APPOINTMENT_CLAUSE),
            postgresql_where=text(ACTIVE_APPOINTMENT_CLAUSE),
        ),
    )

    def __repr__(self):
        return f"<Appointment(id={self.id}, barber_id={self.barber_id}, status='{self.status.value}')>"


event.listen(
    Appointment.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "ALTER TABLE appointments ADD CONSTRAINT ex_appointments_barber_no_overlap "
        "EXCLUDE USING gist (barber_id WITH =, tstzrange(start_time, end_time) WITH &&) "
        f"WHERE ({ACTIVE_APPOINTMENT_CLAUSE})"
    ).execute_if(dialect="postgresql"),
)

_SQLITE_OVERLAP_CHECK = (
    "SELECT RAISE(ABORT, 'appointment overlaps an active appointment of the barber') "
    "WHERE EXISTS (SELECT 1 FROM appointments AS other "
    "WHERE other.barber_id = NEW.barber_id AND other.id != NEW.id "
    "AND other.status NOT IN ('cancelled', 'no_show') "
    "AND other.start_time < NEW.end_time AND other.end_time > NEW.start_time);"
)

event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER trg_appointments_no_overlap_insert BEFORE INSERT ON appointments "
        "WHEN NEW.status NOT IN ('cancelled', 'no_show') "
        f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER trg_appointments_no_overlap_update "
        "BEFORE UPDATE OF barber_id, start_time, end_time, status ON appointments "
        "WHEN NEW.status NOT IN ('cancelled', 'no_show') "
        f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
