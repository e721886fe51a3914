# backend/booking_engine/repositories/sql_store.py
"""
SQLAlchemy-backed PersistenceStore and PatientDirectory.

Each call opens its own session from the injected factory and closes it
before returning, so the store can be shared across threads.

Reservation is an atomic check-and-reserve:
    1. Take the per-(provider, date) Redis lock (fails open without Redis)
    2. Inside one transaction, serialise on the day (PostgreSQL advisory
       lock) and return the earlier appointment if the idempotency key was
       already used
    3. Re-read the active appointments of that date and re-run the
       buffer-aware conflict check
    4. Insert; the database overlap guard rejects anything a concurrent
       writer slipped in, which becomes a ConflictError (or the earlier
       appointment when the key collided)
"""

from contextlib import contextmanager
from datetime import date, datetime
import logging
from typing import Callable, ContextManager, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import reservation_lock
from ..core.config import settings
from ..core.enums import AppointmentStatus
from ..core.exceptions import ConflictError, NotFoundError, PersistenceError
from ..models.appointment import Appointment as AppointmentModel
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.booking import Appointment, SlotSelection
from ..schemas.schedule import ScheduleConfig
from ..services.conflict_checker import find_conflict
from .appointment_repository import AppointmentRepository
from .patient_repository import PatientRepository
from .schedule_repository import ScheduleRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def to_appointment(record: AppointmentModel) -> Appointment:
    return Appointment.model_validate(record)


class SqlPersistenceStore:
    """PersistenceStore over a relational database."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        lock_timeout_s: Optional[float] = None,
        lock_ttl_s: Optional[int] = None,
    ):
        self._session_factory = session_factory
        if lock_timeout_s is None:
            lock_timeout_s = settings.reservation_lock_timeout_seconds
        if lock_ttl_s is None:
            lock_ttl_s = settings.reservation_lock_ttl_seconds
        self._lock_timeout_s = lock_timeout_s
        self._lock_ttl_s = lock_ttl_s

    def _day_lock(self, provider_id: str, day: date) -> ContextManager[bool]:
        return reservation_lock(
            provider_id, day, timeout_s=self._lock_timeout_s, ttl_s=self._lock_ttl_s
        )

    @staticmethod
    def _serialize_day(db: Session, provider_id: str, day: date) -> None:
        # PostgreSQL only; SQLite runs the overlap trigger under its single writer lock.
        if db.get_bind().dialect.name != "postgresql":
            return
        db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"{provider_id}:{day.isoformat()}"},
        )

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    def load_schedule(self, provider_id: str) -> ScheduleConfig:
        with self._session() as db:
            config = ScheduleRepository(db).get_config(provider_id)
        if config is None:
            raise NotFoundError(
                f"No schedule configured for provider {provider_id}",
                code="SCHEDULE_NOT_FOUND",
                details={"provider_id": provider_id},
            )
        return config

    def save_schedule(self, config: ScheduleConfig) -> None:
        with self._session() as db:
            repo = ScheduleRepository(db)
            with repo.transaction():
                repo.save_config(config)

    def load_appointments(self, provider_id: str, day: date) -> List[Appointment]:
        with self._session() as db:
            records = AppointmentRepository(db).get_for_date(provider_id, day)
            return [to_appointment(record) for record in records]

    def load_appointments_between(
        self, provider_id: str, start: date, end: date
    ) -> List[Appointment]:
        with self._session() as db:
            records = AppointmentRepository(db).get_between(provider_id, start, end)
            return [to_appointment(record) for record in records]

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._session() as db:
            record = AppointmentRepository(db).get_by_id(appointment_id)
            return to_appointment(record) if record is not None else None

    def reserve_appointment(self, selection: SlotSelection, idempotency_key: str) -> Appointment:
        with self._day_lock(selection.provider_id, selection.date) as acquired:
            if not acquired:
                prometheus_metrics.record_reservation("error")
                raise PersistenceError("Timed out waiting for the reservation lock", operation="reserve")
            with self._session() as db:
                return self._reserve_locked(db, selection, idempotency_key)

    def _reserve_locked(
        self, db: Session, selection: SlotSelection, idempotency_key: str
    ) -> Appointment:
        repo = AppointmentRepository(db)
        try:
            with repo.transaction():
                self._serialize_day(db, selection.provider_id, selection.date)
                existing = repo.get_by_idempotency_key(idempotency_key)
                if existing is not None:
                    prometheus_metrics.record_reservation("duplicate")
                    logger.info(
                        "Reservation replayed for idempotency key",
                        extra={"appointment_id": existing.id, "provider_id": selection.provider_id},
                    )
                    return to_appointment(existing)

                buffer_minutes = self._buffer_minutes(db, selection.provider_id)
                active = [
                    to_appointment(record)
                    for record in repo.get_active_for_date(
                        selection.provider_id, selection.date, for_update=True
                    )
                ]
                conflict = find_conflict(
                    selection.start_minute,
                    selection.duration_minutes,
                    active,
                    buffer_minutes=buffer_minutes,
                )
                if conflict is not None:
                    prometheus_metrics.record_reservation("conflict")
                    raise ConflictError(existing_appointment_id=conflict.id)

                record = repo.create(
                    provider_id=selection.provider_id,
                    patient_id=selection.patient_id,
                    date=selection.date,
                    start_minute=selection.start_minute,
                    duration_minutes=selection.duration_minutes,
                    modality=selection.modality,
                    price=selection.price,
                    status=AppointmentStatus.SCHEDULED,
                    appointment_type=selection.appointment_type,
                    notes=selection.notes,
                    idempotency_key=idempotency_key,
                )
                appointment = to_appointment(record)
        except IntegrityError as exc:
            return self._resolve_integrity_race(repo, selection, idempotency_key, exc)

        prometheus_metrics.record_reservation("confirmed")
        logger.info(
            "Appointment reserved",
            extra={
                "appointment_id": appointment.id,
                "provider_id": appointment.provider_id,
                "slot_id": selection.slot_id,
            },
        )
        return appointment

    def _resolve_integrity_race(
        self,
        repo: AppointmentRepository,
        selection: SlotSelection,
        idempotency_key: str,
        exc: IntegrityError,
    ) -> Appointment:
        existing = repo.get_by_idempotency_key(idempotency_key)
        if existing is not None:
            prometheus_metrics.record_reservation("duplicate")
            return to_appointment(existing)
        prometheus_metrics.record_reservation("conflict")
        logger.warning(
            "Reservation lost a concurrent race",
            extra={"provider_id": selection.provider_id, "slot_id": selection.slot_id},
        )
        raise ConflictError(
            existing_appointment_id=None,
            message="This time slot was reserved by another booking",
        ) from exc

    def _buffer_minutes(self, db: Session, provider_id: str) -> int:
        config = ScheduleRepository(db).get_config(provider_id)
        return config.policy.buffer_minutes if config is not None else 0

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        with self._session() as db:
            repo = AppointmentRepository(db)
            with repo.transaction():
                record = self._require(repo, appointment_id)
                if record.is_active:
                    record.cancel(datetime.now())
                    repo.flush()
                appointment = to_appointment(record)
        logger.info("Appointment cancelled", extra={"appointment_id": appointment_id})
        return appointment

    def reschedule_appointment(
        self, appointment_id: str, selection: SlotSelection, idempotency_key: str
    ) -> Appointment:
        """
        Move an appointment to the slot in ``selection``.

        The appointment keeps its id; it is ignored by its own conflict check.
        Every applied key is recorded; replaying one returns the appointment
        as it stands without moving it again.
        """
        with self._day_lock(selection.provider_id, selection.date) as acquired:
            if not acquired:
                raise PersistenceError(
                    "Timed out waiting for the reservation lock", operation="reschedule"
                )
            with self._session() as db:
                repo = AppointmentRepository(db)
                try:
                    with repo.transaction():
                        self._serialize_day(db, selection.provider_id, selection.date)
                        replay = repo.get_by_reschedule_key(idempotency_key)
                        if replay is not None:
                            return to_appointment(replay)

                        record = self._require(repo, appointment_id)
                        active = [
                            to_appointment(item)
                            for item in repo.get_active_for_date(
                                selection.provider_id, selection.date, for_update=True
                            )
                        ]
                        conflict = find_conflict(
                            selection.start_minute,
                            selection.duration_minutes,
                            active,
                            buffer_minutes=self._buffer_minutes(db, selection.provider_id),
                            exclude_appointment_id=appointment_id,
                        )
                        if conflict is not None:
                            raise ConflictError(existing_appointment_id=conflict.id)

                        record.duration_minutes = selection.duration_minutes
                        record.modality = selection.modality.value
                        record.price = selection.price
                        repo.record_reschedule(
                            record, idempotency_key, selection.date, selection.start_minute
                        )
                        appointment = to_appointment(record)
                except IntegrityError as exc:
                    raise ConflictError(
                        existing_appointment_id=None,
                        message="This time slot was reserved by another booking",
                    ) from exc
        logger.info(
            "Appointment rescheduled",
            extra={"appointment_id": appointment_id, "slot_id": selection.slot_id},
        )
        return appointment

    @staticmethod
    def _require(repo: AppointmentRepository, appointment_id: str) -> AppointmentModel:
        record = repo.get_by_id(appointment_id)
        if record is None:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                code="APPOINTMENT_NOT_FOUND",
                details={"appointment_id": appointment_id},
            )
        return record


class SqlPatientDirectory:
    """PatientDirectory keyed by normalised email."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def create_or_find_patient(self, name: str, email: str, phone: str) -> str:
        db = self._session_factory()
        try:
            repo = PatientRepository(db)
            existing = repo.get_by_email(email)
            if existing is not None:
                return existing.id
            try:
                with repo.transaction():
                    patient = repo.create(
                        name=name.strip(), email=email.strip().lower(), phone=phone.strip()
                    )
                    patient_id = patient.id
            except IntegrityError:
                # Created concurrently under the same email.
                existing = repo.get_by_email(email)
                if existing is None:
                    raise
                return existing.id
            logger.info("Patient created", extra={"patient_id": patient_id})
            return patient_id
        finally:
            db.close()
