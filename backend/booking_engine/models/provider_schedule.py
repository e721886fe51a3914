# backend/booking_engine/models/provider_schedule.py
"""Stored schedule configuration, one row per provider."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String

from ..database import Base


class ProviderSchedule(Base):
    """
    Weekly hours, date exceptions, policy and prices as JSON documents.

    The documents are the serialized form of the ScheduleConfig schema; the
    repository validates them on the way out.
    """

    __tablename__ = "provider_schedules"

    provider_id = Column(String(64), primary_key=True)
    weekly_schedule = Column(JSON, nullable=False, default=dict)
    exceptions = Column(JSON, nullable=False, default=list)
    policy = Column(JSON, nullable=True)
    prices = Column(JSON, nullable=True)
    default_modality = Column(String(20), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def __repr__(self) -> str:
        return f"<ProviderSchedule {self.provider_id}>"
