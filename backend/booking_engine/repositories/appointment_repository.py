# backend/booking_engine/repositories/appointment_repository.py
"""Appointment queries."""

from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import AppointmentStatus
from ..core.exceptions import PersistenceError
from ..models.appointment import Appointment
from ..models.appointment_reschedule import AppointmentReschedule
from .base_repository import BaseRepository

INACTIVE_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value)


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def get_for_date(self, provider_id: str, day: date) -> List[Appointment]:
        """Every appointment of the provider on ``day``, any status, in start order."""
        try:
            return (
                self.db.query(Appointment)
                .filter(Appointment.provider_id == provider_id, Appointment.date == day)
                .order_by(Appointment.start_minute)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading appointments for {provider_id} on {day}: {str(e)}")
            raise PersistenceError("Failed to load appointments", operation="get_for_date") from e

    def get_active_for_date(
        self, provider_id: str, day: date, *, for_update: bool = False
    ) -> List[Appointment]:
        """
        Active appointments on ``day``.

        ``for_update`` takes row locks where the dialect supports them; SQLite
        ignores the clause.
        """
        try:
            query = self.db.query(Appointment).filter(
                Appointment.provider_id == provider_id,
                Appointment.date == day,
                Appointment.status.notin_(INACTIVE_STATUSES),
            )
            if for_update:
                query = query.with_for_update()
            return query.order_by(Appointment.start_minute).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading active appointments: {str(e)}")
            raise PersistenceError(
                "Failed to load appointments", operation="get_active_for_date"
            ) from e

    def get_between(self, provider_id: str, start: date, end: date) -> List[Appointment]:
        """Appointments with ``start <= date <= end``."""
        try:
            return (
                self.db.query(Appointment)
                .filter(
                    Appointment.provider_id == provider_id,
                    Appointment.date >= start,
                    Appointment.date <= end,
                )
                .order_by(Appointment.date, Appointment.start_minute)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading appointments between {start} and {end}: {str(e)}")
            raise PersistenceError("Failed to load appointments", operation="get_between") from e

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Appointment]:
        return self.find_one_by(idempotency_key=idempotency_key)

    def get_by_reschedule_key(self, reschedule_key: str) -> Optional[Appointment]:
        """The appointment a reschedule with ``reschedule_key`` was applied to."""
        try:
            return (
                self.db.query(Appointment)
                .join(AppointmentReschedule, AppointmentReschedule.appointment_id == Appointment.id)
                .filter(AppointmentReschedule.idempotency_key == reschedule_key)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding reschedule {reschedule_key}: {str(e)}")
            raise PersistenceError(
                "Failed to find reschedule", operation="get_by_reschedule_key"
            ) from e

    def record_reschedule(
        self, record: Appointment, reschedule_key: str, new_date: date, new_start_minute: int
    ) -> AppointmentReschedule:
        """Move ``record`` and log the move under ``reschedule_key``."""
        move = AppointmentReschedule(
            idempotency_key=reschedule_key,
            appointment_id=record.id,
            from_date=record.date,
            from_start_minute=record.start_minute,
            to_date=new_date,
            to_start_minute=new_start_minute,
        )
        record.date = new_date
        record.start_minute = new_start_minute
        self.db.add(move)
        self.flush()
        return move
