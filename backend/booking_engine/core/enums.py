# backend/booking_engine/core/enums.py
"""
Core enums for the booking engine.

String-valued so they serialize cleanly through pydantic and JSON columns.
"""

from enum import Enum


class Weekday(str, Enum):
    """Days of the week, ordered as ``date.weekday()`` indexes them."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        return list(cls)[index]


class SessionModality(str, Enum):
    """How a session is delivered."""

    IN_PERSON = "in_person"
    ONLINE = "online"


class BlockReason(str, Enum):
    """
    Why a resolved slot is not bookable.

    Declared in the precedence order the availability resolver applies them.
    """

    DATE_BLOCKED = "date blocked"
    TIME_BLOCKED = "time blocked"
    PAST = "past"
    BEYOND_HORIZON = "beyond booking horizon"
    CONFLICT = "conflict"


class AppointmentStatus(str, Enum):
    """Lifecycle status of a persisted appointment."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def blocks_schedule(self) -> bool:
        """Whether an appointment in this status occupies its time."""
        return self not in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class AppointmentType(str, Enum):
    INITIAL = "initial"
    FOLLOW_UP = "follow_up"


class BookingState(str, Enum):
    """States of the booking session state machine."""

    SELECTING_DATE = "selecting_date"
    SELECTING_SLOT = "selecting_slot"
    ENTERING_PATIENT_DATA = "entering_patient_data"
    REVIEWING_CONFIRMATION = "reviewing_confirmation"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is BookingState.CONFIRMED


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    EXPIRED = "expired"


class PolicyKind(str, Enum):
    """Which policy window a cancel or reschedule request was checked against."""

    CANCELLATION = "cancellation"
    RESCHEDULING = "rescheduling"
