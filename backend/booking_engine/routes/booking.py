# backend/booking_engine/routes/booking.py
"""
Booking routes

Thin HTTP layer over BookingEngine. All business logic lives in the engine;
handlers only unpack requests and convert domain errors.

Endpoints:
    GET  /providers/{provider_id}/slots?date=          → Resolved slots of a date
    GET  /providers/{provider_id}/calendar?year=&month= → Month grid
    POST /providers/{provider_id}/sessions             → Start a booking session
    POST /sessions/select-date                         → Choose a date
    POST /sessions/select-slot                         → Choose a slot
    POST /sessions/modality                            → Switch in-person/online
    POST /sessions/patient-form                        → Submit patient data
    POST /sessions/back                                → Review back to patient data
    POST /sessions/return-to-slots                     → Pick another slot
    POST /sessions/confirm                             → Reserve and confirm
    POST /sessions/cancel                              → Discard a session
    POST /appointments/{appointment_id}/cancel         → Cancel within policy
    POST /appointments/{appointment_id}/reschedule     → Move within policy
    GET  /payments/{payment_id}/status                 → Payment status passthrough
"""

import datetime
import logging
from typing import Dict, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ..core.enums import PaymentStatus
from ..core.exceptions import DomainException
from ..dependencies import get_booking_engine
from ..schemas.api import (
    ChangeModalityRequest,
    ConfirmRequest,
    PatientFormRequest,
    RescheduleRequest,
    SelectDateRequest,
    SelectSlotRequest,
    SessionRequest,
    StartSessionRequest,
)
from ..schemas.booking import (
    Appointment,
    BookingSession,
    CalendarDay,
    ConfirmationResult,
    TimeSlot,
)
from ..services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["booking"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/providers/{provider_id}/slots", response_model=List[TimeSlot])
def get_available_slots(
    provider_id: str = Path(..., min_length=1),
    day: datetime.date = Query(..., alias="date"),
    engine: BookingEngine = Depends(get_booking_engine),
) -> List[TimeSlot]:
    try:
        return engine.get_available_slots(provider_id, day)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/providers/{provider_id}/calendar", response_model=List[CalendarDay])
def get_calendar_month(
    provider_id: str = Path(..., min_length=1),
    year: int = Query(..., ge=1900, le=2999),
    month: int = Query(..., ge=1, le=12),
    engine: BookingEngine = Depends(get_booking_engine),
) -> List[CalendarDay]:
    try:
        return engine.get_calendar_month(provider_id, year, month)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/providers/{provider_id}/sessions",
    response_model=BookingSession,
    status_code=status.HTTP_201_CREATED,
)
def start_booking_session(
    provider_id: str = Path(..., min_length=1),
    payload: Optional[StartSessionRequest] = Body(default=None),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.start_booking_session(
            provider_id, payload.idempotency_key if payload is not None else None
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/select-date", response_model=BookingSession)
def select_date(
    payload: SelectDateRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.select_date(payload.session, payload.date)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/select-slot", response_model=BookingSession)
def select_slot(
    payload: SelectSlotRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.select_slot(payload.session, payload.slot_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/modality", response_model=BookingSession)
def change_modality(
    payload: ChangeModalityRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.change_modality(payload.session, payload.modality)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/patient-form", response_model=BookingSession)
def submit_patient_form(
    payload: PatientFormRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.submit_patient_form(payload.session, payload.form)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/back", response_model=BookingSession)
def back_to_patient_form(
    payload: SessionRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.back_to_patient_form(payload.session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/return-to-slots", response_model=BookingSession)
def return_to_slot_selection(
    payload: SessionRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingSession:
    try:
        return engine.return_to_slot_selection(payload.session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/confirm", response_model=ConfirmationResult)
def confirm_booking(
    payload: ConfirmRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> ConfirmationResult:
    """
    Reserve the selected slot.

    A failed reservation is not an HTTP error: the response carries the
    failed session and the reason so the client can retry or re-select.
    """
    try:
        return engine.confirm_booking(payload.session, payload.idempotency_key)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/cancel", status_code=status.HTTP_204_NO_CONTENT)
def cancel_session(
    payload: SessionRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> None:
    try:
        engine.cancel_session(payload.session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/appointments/{appointment_id}/cancel", response_model=Appointment)
def cancel_appointment(
    appointment_id: str = Path(..., min_length=1),
    engine: BookingEngine = Depends(get_booking_engine),
) -> Appointment:
    try:
        return engine.cancel_appointment(appointment_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/appointments/{appointment_id}/reschedule", response_model=Appointment)
def reschedule_appointment(
    payload: RescheduleRequest,
    appointment_id: str = Path(..., min_length=1),
    engine: BookingEngine = Depends(get_booking_engine),
) -> Appointment:
    try:
        return engine.reschedule_appointment(
            appointment_id, payload.date, payload.time, payload.idempotency_key
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/payments/{payment_id}/status")
def get_payment_status(
    payment_id: str = Path(..., min_length=1),
    engine: BookingEngine = Depends(get_booking_engine),
) -> Dict[str, str]:
    try:
        payment_status: PaymentStatus = engine.get_payment_status(payment_id)
    except DomainException as e:
        handle_domain_exception(e)
    return {"payment_id": payment_id, "status": payment_status.value}
