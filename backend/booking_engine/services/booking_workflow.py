# backend/booking_engine/services/booking_workflow.py
"""
Booking Workflow

The state machine behind a booking session. Every method takes the current
BookingSession and returns a new one; nothing is stored between calls and no
collaborator is ever called from here. The engine resolves availability and
talks to persistence, then feeds the results into these transitions.

    selecting_date -> selecting_slot -> entering_patient_data
        -> reviewing_confirmation -> submitting -> confirmed | failed

From ``failed`` the caller may retry the submission with the same
idempotency key or go back to slot selection with fresh availability.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, FrozenSet, Iterable, Optional

from ..core.constants import NOTICE_NO_AVAILABLE_SLOTS
from ..core.enums import BookingState, SessionModality
from ..core.exceptions import (
    DomainException,
    InvalidTransitionError,
    SlotUnavailableError,
    ValidationError,
)
from ..core.ulid_helper import generate_ulid
from ..schemas.booking import Appointment, BookingSession, PatientForm, TimeSlot
from ..schemas.schedule import ScheduleConfig
from .availability_resolver import has_available_slots
from .form_validator import validate_patient_form

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[BookingState, FrozenSet[BookingState]] = {
    BookingState.SELECTING_DATE: frozenset(
        {BookingState.SELECTING_DATE, BookingState.SELECTING_SLOT}
    ),
    BookingState.SELECTING_SLOT: frozenset(
        {
            BookingState.SELECTING_DATE,
            BookingState.SELECTING_SLOT,
            BookingState.ENTERING_PATIENT_DATA,
        }
    ),
    BookingState.ENTERING_PATIENT_DATA: frozenset(
        {
            BookingState.ENTERING_PATIENT_DATA,
            BookingState.REVIEWING_CONFIRMATION,
            BookingState.SELECTING_SLOT,
        }
    ),
    BookingState.REVIEWING_CONFIRMATION: frozenset(
        {
            BookingState.ENTERING_PATIENT_DATA,
            BookingState.SUBMITTING,
            BookingState.SELECTING_SLOT,
        }
    ),
    BookingState.SUBMITTING: frozenset({BookingState.CONFIRMED, BookingState.FAILED}),
    BookingState.FAILED: frozenset({BookingState.SUBMITTING, BookingState.SELECTING_SLOT}),
    BookingState.CONFIRMED: frozenset(),
}


def can_transition(current: BookingState, target: BookingState) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def is_session_expired(session: BookingSession, now: datetime, timeout_minutes: int) -> bool:
    """
    Whether an unfinished session has been idle longer than ``timeout_minutes``.

    Confirmed sessions never expire; they are a finished record.
    """
    if session.state.is_terminal:
        return False
    return now - session.updated_at > timedelta(minutes=timeout_minutes)


class BookingWorkflow:
    """Pure transitions over BookingSession values."""

    def _require(self, session: BookingSession, action: str, *states: BookingState) -> None:
        if session.state not in states:
            raise InvalidTransitionError(current_state=session.state.value, action=action)

    def _advance(
        self,
        session: BookingSession,
        action: str,
        target: BookingState,
        now: datetime,
        **updates: Any,
    ) -> BookingSession:
        if not can_transition(session.state, target):
            raise InvalidTransitionError(current_state=session.state.value, action=action)
        logger.debug(
            "Booking session transition",
            extra={
                "session_id": session.id,
                "action": action,
                "from_state": session.state.value,
                "to_state": target.value,
            },
        )
        return session.model_copy(update={"state": target, "updated_at": now, **updates})

    def start_session(
        self,
        provider_id: str,
        now: datetime,
        idempotency_key: Optional[str] = None,
    ) -> BookingSession:
        return BookingSession(
            id=generate_ulid(),
            provider_id=provider_id,
            state=BookingState.SELECTING_DATE,
            idempotency_key=idempotency_key or generate_ulid(),
            created_at=now,
            updated_at=now,
        )

    def select_date(
        self,
        session: BookingSession,
        target_date: date,
        slots: Iterable[TimeSlot],
        now: datetime,
    ) -> BookingSession:
        """
        Move to slot selection when ``target_date`` has something bookable.

        A date without available slots leaves the session selecting a date and
        sets the "no available slots" notice instead of raising.
        """
        self._require(session, "select date", BookingState.SELECTING_DATE, BookingState.SELECTING_SLOT)
        if not has_available_slots(slots):
            return self._advance(
                session,
                "select date",
                BookingState.SELECTING_DATE,
                now,
                selected_date=None,
                selected_slot=None,
                notice=NOTICE_NO_AVAILABLE_SLOTS,
            )
        return self._advance(
            session,
            "select date",
            BookingState.SELECTING_SLOT,
            now,
            selected_date=target_date,
            selected_slot=None,
            notice=None,
            last_error=None,
        )

    def select_slot(
        self,
        session: BookingSession,
        slot_id: str,
        slots: Iterable[TimeSlot],
        now: datetime,
    ) -> BookingSession:
        self._require(session, "select slot", BookingState.SELECTING_SLOT)
        slot = next((candidate for candidate in slots if candidate.id == slot_id), None)
        if slot is None:
            raise SlotUnavailableError(block_reason=None, slot_id=slot_id)
        if not slot.is_available:
            raise SlotUnavailableError(block_reason=slot.block_reason, slot_id=slot_id)
        return self._advance(
            session,
            "select slot",
            BookingState.ENTERING_PATIENT_DATA,
            now,
            selected_slot=slot,
            notice=None,
        )

    def change_modality(
        self,
        session: BookingSession,
        modality: SessionModality,
        config: ScheduleConfig,
        now: datetime,
    ) -> BookingSession:
        """Switch the selected slot between in-person and online and re-price it."""
        self._require(session, "change modality", BookingState.ENTERING_PATIENT_DATA)
        if not config.policy.allows(modality):
            raise ValidationError("modality", f"{modality.value} sessions are not offered")
        slot = _priced_slot(session.selected_slot, config, modality, session.patient_form)
        return self._advance(
            session,
            "change modality",
            BookingState.ENTERING_PATIENT_DATA,
            now,
            selected_slot=slot,
        )

    def submit_patient_form(
        self,
        session: BookingSession,
        form: PatientForm,
        config: ScheduleConfig,
        now: datetime,
    ) -> BookingSession:
        """Validate every field at once; on success move to review."""
        self._require(session, "submit patient form", BookingState.ENTERING_PATIENT_DATA)
        validate_patient_form(form, now.date())
        slot = _priced_slot(session.selected_slot, config, None, form)
        return self._advance(
            session,
            "submit patient form",
            BookingState.REVIEWING_CONFIRMATION,
            now,
            patient_form=form,
            selected_slot=slot,
        )

    def back_to_patient_form(self, session: BookingSession, now: datetime) -> BookingSession:
        self._require(session, "go back", BookingState.REVIEWING_CONFIRMATION)
        return self._advance(session, "go back", BookingState.ENTERING_PATIENT_DATA, now)

    def begin_submission(
        self,
        session: BookingSession,
        idempotency_key: str,
        now: datetime,
    ) -> BookingSession:
        """Enter ``submitting`` from review, or again from ``failed`` to retry."""
        self._require(
            session, "confirm", BookingState.REVIEWING_CONFIRMATION, BookingState.FAILED
        )
        return self._advance(
            session,
            "confirm",
            BookingState.SUBMITTING,
            now,
            idempotency_key=idempotency_key,
            last_error=None,
        )

    def mark_confirmed(
        self, session: BookingSession, appointment: Appointment, now: datetime
    ) -> BookingSession:
        return self._advance(
            session,
            "confirm reservation",
            BookingState.CONFIRMED,
            now,
            appointment=appointment,
            last_error=None,
        )

    def mark_failed(
        self, session: BookingSession, error: DomainException, now: datetime
    ) -> BookingSession:
        return self._advance(
            session,
            "fail reservation",
            BookingState.FAILED,
            now,
            last_error=error.to_dict(),
        )

    def return_to_slot_selection(self, session: BookingSession, now: datetime) -> BookingSession:
        """Drop the chosen slot so the caller can pick again from fresh availability."""
        self._require(
            session,
            "return to slot selection",
            BookingState.ENTERING_PATIENT_DATA,
            BookingState.REVIEWING_CONFIRMATION,
            BookingState.FAILED,
        )
        return self._advance(
            session,
            "return to slot selection",
            BookingState.SELECTING_SLOT,
            now,
            selected_slot=None,
            notice=None,
        )

    def cancel(self, session: BookingSession) -> None:
        """Tear the session down. Confirmed sessions are finished and cannot be cancelled."""
        if session.state.is_terminal:
            raise InvalidTransitionError(current_state=session.state.value, action="cancel")
        logger.info(
            "Booking session cancelled",
            extra={
                "session_id": session.id,
                "provider_id": session.provider_id,
                "state": session.state.value,
            },
        )
        return None


def _priced_slot(
    slot: Optional[TimeSlot],
    config: ScheduleConfig,
    modality: Optional[SessionModality],
    form: Optional[PatientForm],
) -> TimeSlot:
    if slot is None:
        raise SlotUnavailableError(block_reason=None)
    chosen = modality or slot.modality
    is_first_time = form.is_first_time if form is not None else False
    return slot.model_copy(
        update={"modality": chosen, "price": config.prices.price_for(chosen, is_first_time)}
    )
