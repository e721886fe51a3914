# backend/booking_engine/models/appointment.py
"""
Appointment model for the booking engine.

Appointments store provider, date and minute offsets directly, so a stored
reservation stays valid whatever later happens to the weekly schedule.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.sql import text
import ulid

from ..core.enums import AppointmentStatus, AppointmentType, SessionModality
from ..database import Base

_ACTIVE_ONLY = text("status NOT IN ('cancelled', 'no_show')")


class Appointment(Base):
    """
    One reservation on a provider's calendar.

    Active appointments of one provider never overlap on a date. The partial
    unique index covers identical starts and the overlap guard below covers
    every other intersecting span.
    """

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(26), nullable=True, index=True)

    date = Column(Date, nullable=False, index=True)
    start_minute = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    modality = Column(String(20), nullable=False, default=SessionModality.IN_PERSON.value)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True)
    appointment_type = Column(String(20), nullable=False, default=AppointmentType.FOLLOW_UP.value)
    notes = Column(Text, nullable=True)

    idempotency_key = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_appointment_duration_positive"),
        CheckConstraint("start_minute >= 0", name="check_appointment_start_non_negative"),
        CheckConstraint("price >= 0", name="check_appointment_price_non_negative"),
        Index(
            "uq_appointments_active_slot",
            "provider_id",
            "date",
            "start_minute",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_appointments_provider_date", "provider_id", "date"),
    )

    def __init__(self, **kwargs: Any) -> None:
        for enum_field in ("modality", "status", "appointment_type"):
            value = kwargs.get(enum_field)
            if value is not None and hasattr(value, "value"):
                kwargs[enum_field] = value.value
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id} provider={self.provider_id} "
            f"{self.date} +{self.start_minute}m status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return AppointmentStatus(self.status).blocks_schedule

    def cancel(self, cancelled_at: Optional[datetime] = None) -> None:
        self.status = AppointmentStatus.CANCELLED.value
        self.cancelled_at = cancelled_at or datetime.now()


# Overlap guard enforced by the database itself, whatever process writes.
# SQLite checks inside the writing statement, with the provider's stored
# buffer; PostgreSQL rejects overlapping spans with an exclusion constraint
# and the store serialises buffer checks with a transaction advisory lock.
_SQLITE_OVERLAP_CHECK = """
BEGIN
    SELECT RAISE(ABORT, 'appointment overlaps an active appointment')
    WHERE EXISTS (
        SELECT 1 FROM appointments AS other
        WHERE other.provider_id = NEW.provider_id
          AND other.date = NEW.date
          AND other.id != NEW.id
          AND other.status NOT IN ('cancelled', 'no_show')
          AND other.start_minute - COALESCE((
                SELECT json_extract(ps.policy, '$.buffer_minutes')
                FROM provider_schedules AS ps WHERE ps.provider_id = NEW.provider_id
              ), 0) < NEW.start_minute + NEW.duration_minutes
          AND NEW.start_minute < other.start_minute + other.duration_minutes + COALESCE((
                SELECT json_extract(ps.policy, '$.buffer_minutes')
                FROM provider_schedules AS ps WHERE ps.provider_id = NEW.provider_id
              ), 0)
    );
END
"""

event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER IF NOT EXISTS trg_appointments_no_overlap_insert "
        "BEFORE INSERT ON appointments "
        "WHEN NEW.status NOT IN ('cancelled', 'no_show') " + _SQLITE_OVERLAP_CHECK
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER IF NOT EXISTS trg_appointments_no_overlap_update "
        "BEFORE UPDATE OF date, start_minute, duration_minutes, status ON appointments "
        "WHEN NEW.status NOT IN ('cancelled', 'no_show') " + _SQLITE_OVERLAP_CHECK
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Appointment.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        """
        ALTER TABLE appointments
          ADD CONSTRAINT appointments_no_overlap_per_provider
          EXCLUDE USING gist (
            provider_id WITH =,
            date WITH =,
            int4range(start_minute, start_minute + duration_minutes) WITH &&
          )
          WHERE (status NOT IN ('cancelled', 'no_show'))
        """
    ).execute_if(dialect="postgresql"),
)
