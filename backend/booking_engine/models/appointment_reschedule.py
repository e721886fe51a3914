# backend/booking_engine/models/appointment_reschedule.py
"""Audit of applied reschedules, one row per idempotency key."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String

from ..database import Base


class AppointmentReschedule(Base):
    """
    A move of one appointment, keyed by the caller's idempotency key.

    Keys are never overwritten, so replaying any earlier key finds its row
    and leaves the appointment where later moves put it.
    """

    __tablename__ = "appointment_reschedules"

    idempotency_key = Column(String(64), primary_key=True)
    appointment_id = Column(String(26), ForeignKey("appointments.id"), nullable=False, index=True)
    from_date = Column(Date, nullable=False)
    from_start_minute = Column(Integer, nullable=False)
    to_date = Column(Date, nullable=False)
    to_start_minute = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return f"<AppointmentReschedule {self.idempotency_key} appointment={self.appointment_id}>"
