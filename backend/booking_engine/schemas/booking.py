# backend/booking_engine/schemas/booking.py
"""
Booking value objects.

TimeSlot, Appointment and BookingSession are frozen: a change produces a new
instance via ``model_copy(update=...)`` and the old one is left untouched.
"""

import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, computed_field, model_validator

from ..core.enums import (
    AppointmentStatus,
    AppointmentType,
    BookingState,
    PaymentStatus,
    SessionModality,
)
from ..core.time_utils import format_minute_of_day, slot_start_datetime
from .schedule import FrozenModel

DateType = datetime.date
DateTimeType = datetime.datetime


def make_slot_id(day: DateType, start_minute: int) -> str:
    """Slot identity on a provider's calendar: ``YYYY-MM-DD-HH:MM``."""
    return f"{day.isoformat()}-{format_minute_of_day(start_minute)}"


class TimeSlot(FrozenModel):
    """A candidate or resolved bookable interval on one date."""

    date: DateType
    start_minute: int = Field(ge=0)
    duration_minutes: int = Field(gt=0)
    modality: SessionModality
    price: float = Field(ge=0)
    is_available: bool = True
    block_reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_derived_fields(cls, data: Any) -> Any:
        # Serialized slots carry their computed id/time; both are re-derived.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in ("id", "time")}
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return make_slot_id(self.date, self.start_minute)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def time(self) -> str:
        return format_minute_of_day(self.start_minute)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def starts_at(self) -> DateTimeType:
        return slot_start_datetime(self.date, self.start_minute)


class Appointment(FrozenModel):
    """A persisted reservation on a provider's calendar."""

    model_config = ConfigDict(frozen=True, extra="forbid", from_attributes=True)

    id: str
    provider_id: str
    date: DateType
    start_minute: int = Field(ge=0)
    duration_minutes: int = Field(gt=0)
    modality: SessionModality
    price: float = 0
    patient_id: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    appointment_type: AppointmentType = AppointmentType.FOLLOW_UP
    idempotency_key: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[DateTimeType] = None

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def starts_at(self) -> DateTimeType:
        return slot_start_datetime(self.date, self.start_minute)

    @property
    def is_active(self) -> bool:
        return self.status.blocks_schedule


class PatientForm(FrozenModel):
    """Patient data entered during booking. Rules are applied by the form validator."""

    name: str = ""
    email: str = ""
    phone: str = ""
    birth_date: Optional[DateType] = None
    notes: Optional[str] = None
    is_first_time: bool = False
    terms_accepted: bool = False


class SlotSelection(FrozenModel):
    """Everything the store needs to reserve one slot."""

    provider_id: str
    date: DateType
    start_minute: int = Field(ge=0)
    duration_minutes: int = Field(gt=0)
    modality: SessionModality
    price: float = Field(ge=0)
    patient_id: Optional[str] = None
    appointment_type: AppointmentType = AppointmentType.FOLLOW_UP
    notes: Optional[str] = None

    @property
    def slot_id(self) -> str:
        return make_slot_id(self.date, self.start_minute)


class BookingSession(FrozenModel):
    """Explicit booking progress, passed through every workflow call."""

    id: str
    provider_id: str
    state: BookingState = BookingState.SELECTING_DATE
    idempotency_key: str
    selected_date: Optional[DateType] = None
    selected_slot: Optional[TimeSlot] = None
    patient_form: Optional[PatientForm] = None
    notice: Optional[str] = None
    last_error: Optional[Dict[str, Any]] = None
    appointment: Optional[Appointment] = None
    created_at: DateTimeType
    updated_at: DateTimeType


class CalendarDay(FrozenModel):
    """One cell of the month grid shown when picking a date."""

    date: DateType
    is_current_month: bool
    is_today: bool
    is_past: bool
    has_available_slots: bool
    slots: List[TimeSlot] = Field(default_factory=list)


class PaymentLink(FrozenModel):
    id: str
    url: str
    code: str
    amount: float
    description: str
    expires_at: DateTimeType
    status: PaymentStatus = PaymentStatus.PENDING


class ConfirmationResult(FrozenModel):
    """Outcome of ``confirm_booking``: either a confirmed appointment or a failure."""

    session: BookingSession
    appointment: Optional[Appointment] = None
    error: Optional[Dict[str, Any]] = None
    payment_link: Optional[PaymentLink] = None

    @property
    def succeeded(self) -> bool:
        return self.session.state is BookingState.CONFIRMED
