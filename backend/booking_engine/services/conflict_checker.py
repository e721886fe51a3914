# backend/booking_engine/services/conflict_checker.py
"""
Conflict Checker

Pure interval arithmetic shared by availability resolution and the atomic
reservation step. Intervals are half-open ``[start, end)`` minute offsets on
a single date, so back-to-back sessions never conflict.

An existing appointment ``[s, s+d)`` is widened by the provider's buffer to
``[s - buffer, s + d + buffer)`` before it is compared with a candidate.
"""

from typing import Iterable, List, Optional, Tuple

from ..schemas.booking import Appointment


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval intersection test."""
    return a_start < b_end and b_start < a_end


def expand_with_buffer(start: int, duration: int, buffer_minutes: int) -> Tuple[int, int]:
    """Blocked interval of an appointment including its buffer on both sides."""
    return start - buffer_minutes, start + duration + buffer_minutes


def conflicts_with(
    candidate_start: int,
    candidate_duration: int,
    appointment: Appointment,
    buffer_minutes: int = 0,
) -> bool:
    blocked_start, blocked_end = expand_with_buffer(
        appointment.start_minute, appointment.duration_minutes, buffer_minutes
    )
    return overlaps(candidate_start, candidate_start + candidate_duration, blocked_start, blocked_end)


def find_conflicts(
    candidate_start: int,
    candidate_duration: int,
    appointments: Iterable[Appointment],
    buffer_minutes: int = 0,
    exclude_appointment_id: Optional[str] = None,
) -> List[Appointment]:
    """
    Every active appointment the candidate interval collides with.

    Cancelled and no-show appointments never block; ``exclude_appointment_id``
    lets a reschedule ignore the appointment being moved.
    """
    return [
        appointment
        for appointment in appointments
        if appointment.is_active
        and appointment.id != exclude_appointment_id
        and conflicts_with(candidate_start, candidate_duration, appointment, buffer_minutes)
    ]


def find_conflict(
    candidate_start: int,
    candidate_duration: int,
    appointments: Iterable[Appointment],
    buffer_minutes: int = 0,
    exclude_appointment_id: Optional[str] = None,
) -> Optional[Appointment]:
    """First blocking appointment, or None."""
    conflicts = find_conflicts(
        candidate_start,
        candidate_duration,
        appointments,
        buffer_minutes=buffer_minutes,
        exclude_appointment_id=exclude_appointment_id,
    )
    return conflicts[0] if conflicts else None
