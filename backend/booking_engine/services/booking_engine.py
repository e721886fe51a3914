# backend/booking_engine/services/booking_engine.py
"""
Booking Engine

Public surface of the engine. Wires the pure services (slot generation,
availability resolution, policy checks, the session state machine) to the
collaborators that hold data or talk to the outside world.

Only ``confirm_booking``, ``cancel_appointment`` and
``reschedule_appointment`` write anything. Payment and notification run after
a reservation is confirmed and never undo it.
"""

from collections import defaultdict
from datetime import date, datetime
import logging
import time
from typing import Callable, DefaultDict, List, Optional

from ..core.config import Settings, settings as default_settings
from ..core.enums import AppointmentType, BookingState, PaymentStatus, SessionModality
from ..core.exceptions import (
    ConflictError,
    ExternalServiceError,
    FormValidationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    SlotUnavailableError,
    ValidationError,
)
from ..core.time_utils import parse_minute_of_day
from ..database import with_persistence_retry
from ..events.booking_events import (
    AppointmentCancelled,
    AppointmentConfirmed,
    AppointmentRescheduled,
)
from ..interfaces import NotificationService, PatientDirectory, PaymentGateway, PersistenceStore
from ..schemas.booking import (
    Appointment,
    BookingSession,
    CalendarDay,
    ConfirmationResult,
    PatientForm,
    PaymentLink,
    SlotSelection,
    TimeSlot,
    make_slot_id,
)
from .availability_resolver import (
    block_reason_for,
    build_calendar_month,
    month_bounds,
    resolve_day,
)
from .base import BaseService
from .booking_workflow import BookingWorkflow, is_session_expired
from .form_validator import validate_patient_form
from .policy_validator import validate_cancellation, validate_reschedule
from .slot_generator import generate_slots_for_config

logger = logging.getLogger(__name__)

# Failures that move a submitting session to failed instead of propagating
RESERVATION_FAILURES = (
    ConflictError,
    SlotUnavailableError,
    PersistenceError,
    NotFoundError,
    ValidationError,
    FormValidationError,
)


class BookingEngine(BaseService):
    """
    Service facade for availability queries and booking sessions.

    Sessions are values: every method that advances one returns a new
    BookingSession and the caller keeps it between requests.
    """

    def __init__(
        self,
        store: PersistenceStore,
        patients: PatientDirectory,
        payments: Optional[PaymentGateway] = None,
        notifications: Optional[NotificationService] = None,
        *,
        workflow: Optional[BookingWorkflow] = None,
        clock: Callable[[], datetime] = datetime.now,
        config: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__()
        self.store = store
        self.patients = patients
        self.payments = payments
        self.notifications = notifications
        self.workflow = workflow or BookingWorkflow()
        self.settings = config or default_settings
        self._clock = clock
        self._sleep = sleep

    def now(self) -> datetime:
        return self._clock()

    # Availability

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(self, provider_id: str, day: date) -> List[TimeSlot]:
        """Every slot of ``day`` with its availability flag and block reason."""
        config = self.store.load_schedule(provider_id)
        appointments = self.store.load_appointments(provider_id, day)
        return resolve_day(day, config, appointments, self.now())

    @BaseService.measure_operation("get_calendar_month")
    def get_calendar_month(self, provider_id: str, year: int, month: int) -> List[CalendarDay]:
        if not 1 <= month <= 12:
            raise NotFoundError(f"Invalid month: {month}", code="INVALID_MONTH")
        config = self.store.load_schedule(provider_id)
        first, last = month_bounds(year, month)
        by_date: DefaultDict[date, List[Appointment]] = defaultdict(list)
        for appointment in self.store.load_appointments_between(provider_id, first, last):
            by_date[appointment.date].append(appointment)
        return build_calendar_month(year, month, config, by_date, self.now())

    # Booking session

    @BaseService.measure_operation("start_booking_session")
    def start_booking_session(
        self, provider_id: str, idempotency_key: Optional[str] = None
    ) -> BookingSession:
        # Fails fast with NotFoundError for unknown providers.
        self.store.load_schedule(provider_id)
        session = self.workflow.start_session(provider_id, self.now(), idempotency_key)
        self.log_operation("start_booking_session", session_id=session.id, provider_id=provider_id)
        return session

    @BaseService.measure_operation("select_date")
    def select_date(self, session: BookingSession, day: date) -> BookingSession:
        slots = self.get_available_slots(session.provider_id, day)
        return self.workflow.select_date(session, day, slots, self.now())

    @BaseService.measure_operation("select_slot")
    def select_slot(self, session: BookingSession, slot_id: str) -> BookingSession:
        if session.state is not BookingState.SELECTING_SLOT or session.selected_date is None:
            raise InvalidTransitionError(current_state=session.state.value, action="select slot")
        slots = self.get_available_slots(session.provider_id, session.selected_date)
        return self.workflow.select_slot(session, slot_id, slots, self.now())

    @BaseService.measure_operation("change_modality")
    def change_modality(
        self, session: BookingSession, modality: SessionModality
    ) -> BookingSession:
        config = self.store.load_schedule(session.provider_id)
        return self.workflow.change_modality(session, modality, config, self.now())

    @BaseService.measure_operation("submit_patient_form")
    def submit_patient_form(self, session: BookingSession, form: PatientForm) -> BookingSession:
        config = self.store.load_schedule(session.provider_id)
        return self.workflow.submit_patient_form(session, form, config, self.now())

    def back_to_patient_form(self, session: BookingSession) -> BookingSession:
        return self.workflow.back_to_patient_form(session, self.now())

    def review_confirmed(
        self, session: BookingSession, idempotency_key: Optional[str] = None
    ) -> BookingSession:
        """Leave review for ``submitting`` without reserving yet."""
        return self.workflow.begin_submission(
            session, idempotency_key or session.idempotency_key, self.now()
        )

    def return_to_slot_selection(self, session: BookingSession) -> BookingSession:
        return self.workflow.return_to_slot_selection(session, self.now())

    def cancel_session(self, session: BookingSession) -> None:
        return self.workflow.cancel(session)

    def is_session_expired(self, session: BookingSession) -> bool:
        return is_session_expired(session, self.now(), self.settings.session_timeout_minutes)

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(
        self, session: BookingSession, idempotency_key: Optional[str] = None
    ) -> ConfirmationResult:
        """
        Reserve the selected slot and confirm the session.

        Replaying a confirmed session with its key returns the same
        appointment. Conflicts, unavailable slots and exhausted persistence
        retries come back as a failed session carrying the error; the caller
        may retry with the same key or return to slot selection.
        """
        key = idempotency_key or session.idempotency_key

        if session.state is BookingState.CONFIRMED:
            if session.appointment is not None and session.idempotency_key == key:
                self.log_operation("confirm_booking_replayed", session_id=session.id)
                return ConfirmationResult(session=session, appointment=session.appointment)
            raise InvalidTransitionError(current_state=session.state.value, action="confirm")

        if session.state is BookingState.SUBMITTING:
            submitting = session.model_copy(update={"idempotency_key": key})
        else:
            submitting = self.workflow.begin_submission(session, key, self.now())

        try:
            appointment = with_persistence_retry(
                "reserve_appointment",
                lambda: self._reserve(submitting, key),
                max_attempts=self.settings.reservation_max_attempts,
                base_delay_seconds=self.settings.reservation_backoff_base_seconds,
                sleep=self._sleep,
            )
        except RESERVATION_FAILURES as exc:
            self.logger.warning(
                "Booking confirmation failed",
                extra={
                    "session_id": session.id,
                    "provider_id": session.provider_id,
                    "error_code": exc.code,
                },
            )
            failed = self.workflow.mark_failed(submitting, exc, self.now())
            return ConfirmationResult(session=failed, error=exc.to_dict())

        confirmed = self.workflow.mark_confirmed(submitting, appointment, self.now())
        self.log_operation(
            "confirm_booking",
            session_id=confirmed.id,
            appointment_id=appointment.id,
            provider_id=appointment.provider_id,
        )
        payment_link = self._handle_post_confirmation(confirmed, appointment)
        return ConfirmationResult(
            session=confirmed, appointment=appointment, payment_link=payment_link
        )

    def _reserve(self, session: BookingSession, idempotency_key: str) -> Appointment:
        """
        Rebuild the reservation from stored configuration and reserve it.

        Sessions travel through callers, so only the slot id, modality and
        form are taken from them. Start, duration and price come from the
        provider's schedule.
        """
        slot = session.selected_slot
        form = session.patient_form
        if slot is None or form is None:
            raise InvalidTransitionError(current_state=session.state.value, action="reserve")

        now = self.now()
        validate_patient_form(form, now.date())

        config = self.store.load_schedule(session.provider_id)
        candidate = next(
            (
                generated
                for generated in generate_slots_for_config(slot.date, config)
                if generated.id == slot.id
            ),
            None,
        )
        if candidate is None or candidate.duration_minutes != slot.duration_minutes:
            raise SlotUnavailableError(block_reason=None, slot_id=slot.id)
        if not config.policy.allows(slot.modality):
            raise ValidationError("modality", f"{slot.modality.value} sessions are not offered")
        candidate = candidate.model_copy(
            update={
                "modality": slot.modality,
                "price": config.prices.price_for(slot.modality, form.is_first_time),
            }
        )

        # Conflicts are decided by the store inside its transaction.
        reason = block_reason_for(candidate, config, (), now)
        if reason is not None:
            raise SlotUnavailableError(block_reason=reason.value, slot_id=candidate.id)

        patient_id = self.patients.create_or_find_patient(form.name, form.email, form.phone)
        selection = SlotSelection(
            provider_id=session.provider_id,
            date=candidate.date,
            start_minute=candidate.start_minute,
            duration_minutes=candidate.duration_minutes,
            modality=candidate.modality,
            price=candidate.price,
            patient_id=patient_id,
            appointment_type=(
                AppointmentType.INITIAL if form.is_first_time else AppointmentType.FOLLOW_UP
            ),
            notes=form.notes,
        )
        return self.store.reserve_appointment(selection, idempotency_key)

    def _handle_post_confirmation(
        self, session: BookingSession, appointment: Appointment
    ) -> Optional[PaymentLink]:
        """Payment link and confirmation message; failures are logged only."""
        payment_link: Optional[PaymentLink] = None

        if self.payments is not None:
            try:
                payment_link = self.payments.create_payment_link(
                    appointment.price, _describe(appointment)
                )
            except Exception as e:
                self._log_external_failure("create_payment_link", appointment, e)

        form = session.patient_form
        if self.notifications is not None and form is not None:
            event = AppointmentConfirmed(
                appointment_id=appointment.id,
                provider_id=appointment.provider_id,
                patient_id=appointment.patient_id,
                starts_at=appointment.starts_at,
                duration_minutes=appointment.duration_minutes,
                modality=appointment.modality.value,
                price=appointment.price,
                appointment_type=appointment.appointment_type.value,
                patient_name=form.name.strip(),
                payment_url=payment_link.url if payment_link is not None else None,
            )
            try:
                self.notifications.send_confirmation(form.email, event.to_dict())
            except Exception as e:
                self._log_external_failure("send_confirmation", appointment, e)

        return payment_link

    def _log_external_failure(
        self, operation: str, appointment: Appointment, error: Exception
    ) -> None:
        if not isinstance(error, ExternalServiceError):
            error = ExternalServiceError(operation, str(error))
        self.logger.error(
            f"Post-confirmation {operation} failed: {error.message}",
            extra={"appointment_id": appointment.id, "error_code": error.code},
        )

    # Policy

    def validate_cancellation(
        self, appointment: Appointment, now: Optional[datetime] = None
    ) -> None:
        config = self.store.load_schedule(appointment.provider_id)
        validate_cancellation(appointment, now or self.now(), config.policy)

    def validate_reschedule(self, appointment: Appointment, now: Optional[datetime] = None) -> None:
        config = self.store.load_schedule(appointment.provider_id)
        validate_reschedule(appointment, now or self.now(), config.policy)

    @BaseService.measure_operation("cancel_appointment")
    def cancel_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        if not appointment.is_active:
            return appointment
        now = self.now()
        self.validate_cancellation(appointment, now)
        cancelled = self.store.cancel_appointment(appointment_id)
        event = AppointmentCancelled(
            appointment_id=cancelled.id, provider_id=cancelled.provider_id, cancelled_at=now
        )
        self.log_operation("cancel_appointment", **event.to_dict())
        return cancelled

    @BaseService.measure_operation("reschedule_appointment")
    def reschedule_appointment(
        self,
        appointment_id: str,
        new_date: date,
        start_time: str,
        idempotency_key: str,
    ) -> Appointment:
        """
        Move an appointment to another start on ``new_date``.

        ``start_time`` is ``HH:MM`` and must be one of the provider's slot
        starts for that date.
        """
        appointment = self._get_appointment(appointment_id)
        if not appointment.is_active:
            raise InvalidTransitionError(
                current_state=appointment.status.value, action="reschedule"
            )
        now = self.now()
        self.validate_reschedule(appointment, now)

        config = self.store.load_schedule(appointment.provider_id)
        start_minute = parse_minute_of_day(start_time)
        candidate = next(
            (
                slot
                for slot in generate_slots_for_config(new_date, config)
                if slot.start_minute == start_minute
            ),
            None,
        )
        if candidate is None:
            raise SlotUnavailableError(
                block_reason=None, slot_id=make_slot_id(new_date, start_minute)
            )
        others = [
            other
            for other in self.store.load_appointments(appointment.provider_id, new_date)
            if other.id != appointment.id
        ]
        reason = block_reason_for(candidate, config, others, now)
        if reason is not None:
            raise SlotUnavailableError(block_reason=reason.value, slot_id=candidate.id)

        selection = SlotSelection(
            provider_id=appointment.provider_id,
            date=new_date,
            start_minute=start_minute,
            duration_minutes=appointment.duration_minutes,
            modality=appointment.modality,
            price=appointment.price,
            patient_id=appointment.patient_id,
            appointment_type=appointment.appointment_type,
            notes=appointment.notes,
        )
        moved = self.store.reschedule_appointment(appointment_id, selection, idempotency_key)
        event = AppointmentRescheduled(
            appointment_id=moved.id,
            provider_id=moved.provider_id,
            previous_starts_at=appointment.starts_at,
            starts_at=moved.starts_at,
        )
        self.log_operation("reschedule_appointment", **event.to_dict())
        return moved

    def _get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                code="APPOINTMENT_NOT_FOUND",
                details={"appointment_id": appointment_id},
            )
        return appointment

    # Payments

    def get_payment_status(self, payment_id: str) -> PaymentStatus:
        if self.payments is None:
            raise ExternalServiceError("payment_gateway", "not configured")
        return self.payments.check_status(payment_id)


def _describe(appointment: Appointment) -> str:
    kind = "Initial" if appointment.appointment_type is AppointmentType.INITIAL else "Follow-up"
    modality = "online" if appointment.modality is SessionModality.ONLINE else "in-person"
    return f"{kind} {modality} session on {appointment.starts_at:%Y-%m-%d %H:%M}"
