from .booking import (
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
from .schedule import (
    BlockedDate,
    BlockedTimes,
    CancellationPolicy,
    DateException,
    DaySchedule,
    ScheduleConfig,
    SessionPrices,
    WeeklySchedule,
)

__all__ = [
    "Appointment",
    "BlockedDate",
    "BlockedTimes",
    "BookingSession",
    "CalendarDay",
    "CancellationPolicy",
    "ConfirmationResult",
    "DateException",
    "DaySchedule",
    "PatientForm",
    "PaymentLink",
    "ScheduleConfig",
    "SessionPrices",
    "SlotSelection",
    "TimeSlot",
    "WeeklySchedule",
    "make_slot_id",
]
