# backend/booking_engine/services/policy_validator.py
"""
Cancellation and rescheduling window checks.

Both checks are pure: they only decide. Acting on the decision (marking an
appointment cancelled, moving it) belongs to the caller.
"""

from datetime import datetime

from ..core.enums import PolicyKind
from ..core.exceptions import PolicyViolationError
from ..core.time_utils import hours_until
from ..schemas.booking import Appointment
from ..schemas.schedule import CancellationPolicy


def hours_until_appointment(appointment: Appointment, now: datetime) -> float:
    return hours_until(appointment.starts_at, now)


def _enforce_window(
    appointment: Appointment, now: datetime, required_hours: float, kind: PolicyKind
) -> None:
    remaining = hours_until_appointment(appointment, now)
    if remaining < required_hours:
        raise PolicyViolationError(
            policy=kind.value, required_hours=required_hours, actual_hours=remaining
        )


def validate_cancellation(
    appointment: Appointment, now: datetime, policy: CancellationPolicy
) -> None:
    """Raise PolicyViolationError when less than ``cancellation_hours`` remain."""
    _enforce_window(appointment, now, policy.cancellation_hours, PolicyKind.CANCELLATION)


def validate_reschedule(
    appointment: Appointment, now: datetime, policy: CancellationPolicy
) -> None:
    """Raise PolicyViolationError when less than ``rescheduling_hours`` remain."""
    _enforce_window(appointment, now, policy.rescheduling_hours, PolicyKind.RESCHEDULING)
