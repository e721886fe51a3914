# backend/booking_engine/services/availability_resolver.py
"""
Availability Resolver

Turns candidate slots into the final, flagged slot list for a date.
Exclusion rules are applied in a fixed precedence order; the first rule that
matches sets the slot's block reason:

    1. date blocked            - a BlockedDate covers the slot's date
    2. time blocked            - a BlockedTimes entry lists the exact start
    3. past                    - the slot starts before ``now``
    4. beyond booking horizon  - the date is after now + advance_booking_days
    5. conflict                - buffer-aware overlap with an appointment

Everything here is a pure function of its arguments: ``now`` is always passed
in, never read from the clock.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Sequence

from ..core.constants import CALENDAR_GRID_DAYS
from ..core.enums import BlockReason
from ..schemas.booking import Appointment, CalendarDay, TimeSlot
from ..schemas.schedule import ScheduleConfig
from .conflict_checker import find_conflict
from .slot_generator import generate_slots_for_config


def booking_horizon(now: datetime, advance_booking_days: int) -> date:
    """Last date that may still be booked."""
    return now.date() + timedelta(days=advance_booking_days)


def block_reason_for(
    slot: TimeSlot,
    config: ScheduleConfig,
    appointments: Sequence[Appointment],
    now: datetime,
) -> Optional[BlockReason]:
    """First matching exclusion rule for one slot, or None when bookable."""
    if config.is_date_blocked(slot.date):
        return BlockReason.DATE_BLOCKED
    if slot.start_minute in config.blocked_times_for(slot.date):
        return BlockReason.TIME_BLOCKED
    if slot.starts_at < now:
        return BlockReason.PAST
    if slot.date > booking_horizon(now, config.policy.advance_booking_days):
        return BlockReason.BEYOND_HORIZON
    same_day = [appointment for appointment in appointments if appointment.date == slot.date]
    if find_conflict(
        slot.start_minute,
        slot.duration_minutes,
        same_day,
        buffer_minutes=config.policy.buffer_minutes,
    ):
        return BlockReason.CONFLICT
    return None


def resolve_slot(
    slot: TimeSlot,
    config: ScheduleConfig,
    appointments: Sequence[Appointment],
    now: datetime,
) -> TimeSlot:
    """A new TimeSlot carrying the resolved availability flag."""
    reason = block_reason_for(slot, config, appointments, now)
    return slot.model_copy(
        update={
            "is_available": reason is None,
            "block_reason": reason.value if reason is not None else None,
        }
    )


def resolve_slots(
    candidates: Iterable[TimeSlot],
    config: ScheduleConfig,
    appointments: Sequence[Appointment],
    now: datetime,
) -> List[TimeSlot]:
    return [resolve_slot(slot, config, appointments, now) for slot in candidates]


def resolve_day(
    target_date: date,
    config: ScheduleConfig,
    appointments: Sequence[Appointment],
    now: datetime,
) -> List[TimeSlot]:
    """Generate and resolve every slot of ``target_date``."""
    return resolve_slots(generate_slots_for_config(target_date, config), config, appointments, now)


def has_available_slots(slots: Iterable[TimeSlot]) -> bool:
    """Day-level flag deciding whether a calendar date is selectable."""
    return any(slot.is_available for slot in slots)


def calendar_grid_start(year: int, month: int) -> date:
    """Sunday on or before the first day of the month."""
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6
    return first - timedelta(days=(first.weekday() + 1) % 7)


def build_calendar_month(
    year: int,
    month: int,
    config: ScheduleConfig,
    appointments_by_date: Mapping[date, Sequence[Appointment]],
    now: datetime,
) -> List[CalendarDay]:
    """
    Six-week month grid starting on a Sunday.

    Only days of the requested month carry slots; leading and trailing days
    from neighbouring months are shown but never selectable.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    start = calendar_grid_start(year, month)
    today = now.date()
    horizon = booking_horizon(now, config.policy.advance_booking_days)
    days: List[CalendarDay] = []

    for offset in range(CALENDAR_GRID_DAYS):
        day = start + timedelta(days=offset)
        is_current_month = day.month == month and day.year == year
        slots = (
            resolve_day(day, config, appointments_by_date.get(day, ()), now)
            if is_current_month
            else []
        )
        days.append(
            CalendarDay(
                date=day,
                is_current_month=is_current_month,
                is_today=day == today,
                is_past=day < today or day > horizon or config.is_date_blocked(day),
                has_available_slots=has_available_slots(slots),
                slots=slots,
            )
        )
    return days


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
