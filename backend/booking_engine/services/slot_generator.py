# backend/booking_engine/services/slot_generator.py
"""
Slot Generation Service

Generates the candidate time slots of a single date from the weekly
schedule. Candidates are provisional: every one is emitted as available and
the availability resolver decides what is actually bookable.

Algorithm:
    1. Resolve the weekday and look up its DaySchedule (None = closed)
    2. Walk candidate starts from day.start in step_minutes increments
    3. Drop candidates whose interval intersects the lunch window
    4. Drop candidates that would end after day.end
"""

from datetime import date
from typing import Iterator, Optional

from ..core.constants import DEFAULT_STEP_MINUTES
from ..core.enums import SessionModality
from ..schemas.booking import TimeSlot
from ..schemas.schedule import DaySchedule, ScheduleConfig, WeeklySchedule
from .conflict_checker import overlaps


def iter_day_slots(
    target_date: date,
    day: Optional[DaySchedule],
    *,
    session_duration_minutes: int,
    step_minutes: int = DEFAULT_STEP_MINUTES,
    modality: SessionModality = SessionModality.IN_PERSON,
    price: float = 0,
) -> Iterator[TimeSlot]:
    """Yield candidate slots for one day's working hours."""
    if day is None:
        return
    if step_minutes <= 0 or session_duration_minutes <= 0:
        raise ValueError("step_minutes and session_duration_minutes must be positive")

    for start in range(day.start, day.end, step_minutes):
        end = start + session_duration_minutes
        if day.has_lunch and overlaps(start, end, day.lunch_start, day.lunch_end):
            continue
        if end > day.end:
            continue
        yield TimeSlot(
            date=target_date,
            start_minute=start,
            duration_minutes=session_duration_minutes,
            modality=modality,
            price=price,
        )


class DaySlots:
    """
    Lazy, restartable sequence of candidate slots for one date.

    Each iteration starts a fresh generator, so the same object can be walked
    any number of times and always yields the same slots.
    """

    def __init__(
        self,
        target_date: date,
        weekly_schedule: WeeklySchedule,
        *,
        session_duration_minutes: int,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        modality: SessionModality = SessionModality.IN_PERSON,
        price: float = 0,
    ) -> None:
        self.target_date = target_date
        self.day_schedule = weekly_schedule.for_date(target_date)
        self.session_duration_minutes = session_duration_minutes
        self.step_minutes = step_minutes
        self.modality = modality
        self.price = price

    def __iter__(self) -> Iterator[TimeSlot]:
        return iter_day_slots(
            self.target_date,
            self.day_schedule,
            session_duration_minutes=self.session_duration_minutes,
            step_minutes=self.step_minutes,
            modality=self.modality,
            price=self.price,
        )

    def __repr__(self) -> str:
        return f"<DaySlots {self.target_date.isoformat()} step={self.step_minutes}>"


def generate_slots(
    target_date: date,
    weekly_schedule: WeeklySchedule,
    *,
    session_duration_minutes: int,
    step_minutes: int = DEFAULT_STEP_MINUTES,
    modality: SessionModality = SessionModality.IN_PERSON,
    price: float = 0,
) -> DaySlots:
    """Candidate slots for ``target_date``; empty when the provider is closed."""
    return DaySlots(
        target_date,
        weekly_schedule,
        session_duration_minutes=session_duration_minutes,
        step_minutes=step_minutes,
        modality=modality,
        price=price,
    )


def generate_slots_for_config(target_date: date, config: ScheduleConfig) -> DaySlots:
    """Candidate slots priced and sized from a provider's ScheduleConfig."""
    modality = config.default_modality
    return generate_slots(
        target_date,
        config.weekly_schedule,
        session_duration_minutes=config.policy.session_duration_minutes,
        step_minutes=config.policy.step_minutes,
        modality=modality,
        price=config.prices.price_for(modality),
    )
