# backend/booking_engine/schemas/schedule.py
"""
Schedule configuration schemas.

A provider's ScheduleConfig is an immutable snapshot: weekly working hours,
date exceptions, booking policy and session prices. Slot generation and
resolution read it and never modify it.
"""

import datetime
from typing import Annotated, Any, FrozenSet, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.constants import DEFAULT_SESSION_DURATION_MINUTES, DEFAULT_STEP_MINUTES
from ..core.enums import SessionModality, Weekday
from ..core.time_utils import parse_minute_of_day

DateType = datetime.date


class FrozenModel(BaseModel):
    """Immutable value object: extras forbidden, instances hashable."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class DaySchedule(FrozenModel):
    """Working hours for one weekday, as minute-of-day offsets."""

    start: int
    end: int
    lunch_start: Optional[int] = None
    lunch_end: Optional[int] = None

    @field_validator("start", "end", "lunch_start", "lunch_end", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> Any:
        if value is None:
            return None
        return parse_minute_of_day(value)

    @model_validator(mode="after")
    def _check_order(self) -> "DaySchedule":
        if self.start > self.end:
            raise ValueError("Day start must not be after day end")
        if (self.lunch_start is None) != (self.lunch_end is None):
            raise ValueError("Lunch start and lunch end must be given together")
        if self.lunch_start is not None and self.lunch_end is not None:
            if not (self.start <= self.lunch_start < self.lunch_end <= self.end):
                raise ValueError("Lunch window must satisfy start <= lunch_start < lunch_end <= end")
        return self

    @property
    def has_lunch(self) -> bool:
        return self.lunch_start is not None and self.lunch_end is not None


class WeeklySchedule(FrozenModel):
    """Weekday to working hours; ``None`` means the provider is closed."""

    monday: Optional[DaySchedule] = None
    tuesday: Optional[DaySchedule] = None
    wednesday: Optional[DaySchedule] = None
    thursday: Optional[DaySchedule] = None
    friday: Optional[DaySchedule] = None
    saturday: Optional[DaySchedule] = None
    sunday: Optional[DaySchedule] = None

    def for_weekday(self, weekday: Weekday) -> Optional[DaySchedule]:
        return getattr(self, weekday.value)

    def for_date(self, day: DateType) -> Optional[DaySchedule]:
        return self.for_weekday(Weekday.from_index(day.weekday()))


class BlockedDate(FrozenModel):
    """The whole date is unavailable regardless of the weekly schedule."""

    kind: Literal["blocked_date"] = "blocked_date"
    date: DateType
    reason: Optional[str] = None


class BlockedTimes(FrozenModel):
    """Specific slot start times on a date are unavailable."""

    kind: Literal["blocked_times"] = "blocked_times"
    date: DateType
    times: FrozenSet[int]

    @field_validator("times", mode="before")
    @classmethod
    def _parse_times(cls, value: Any) -> Any:
        return frozenset(parse_minute_of_day(item) for item in value)


DateException = Annotated[Union[BlockedDate, BlockedTimes], Field(discriminator="kind")]


class CancellationPolicy(FrozenModel):
    """Booking policy constraints for one provider."""

    cancellation_hours: float = Field(default=24, ge=0)
    rescheduling_hours: float = Field(default=24, ge=0)
    advance_booking_days: int = Field(default=30, ge=0)
    buffer_minutes: int = Field(default=0, ge=0)
    step_minutes: int = Field(default=DEFAULT_STEP_MINUTES, gt=0)
    session_duration_minutes: int = Field(default=DEFAULT_SESSION_DURATION_MINUTES, gt=0)
    allow_online_booking: bool = True
    allow_in_person_booking: bool = True

    def allows(self, modality: SessionModality) -> bool:
        if modality is SessionModality.ONLINE:
            return self.allow_online_booking
        return self.allow_in_person_booking


class SessionPrices(FrozenModel):
    """Price table: first in-person visit, follow-up visit, online session."""

    initial: float = Field(default=0, ge=0)
    follow_up: float = Field(default=0, ge=0)
    online: float = Field(default=0, ge=0)

    def price_for(self, modality: SessionModality, is_first_time: bool = False) -> float:
        if modality is SessionModality.ONLINE:
            return self.online
        return self.initial if is_first_time else self.follow_up


class ScheduleConfig(FrozenModel):
    """Everything slot computation needs to know about one provider."""

    provider_id: str
    weekly_schedule: WeeklySchedule
    exceptions: Tuple[DateException, ...] = ()
    policy: CancellationPolicy = CancellationPolicy()
    prices: SessionPrices = SessionPrices()
    default_modality: SessionModality = SessionModality.IN_PERSON

    @field_validator("exceptions", mode="before")
    @classmethod
    def _coerce_exceptions(cls, value: Any) -> Any:
        return tuple(value) if isinstance(value, list) else value

    def is_date_blocked(self, day: DateType) -> bool:
        return any(isinstance(exc, BlockedDate) and exc.date == day for exc in self.exceptions)

    def blocked_times_for(self, day: DateType) -> FrozenSet[int]:
        blocked: set[int] = set()
        for exc in self.exceptions:
            if isinstance(exc, BlockedTimes) and exc.date == day:
                blocked.update(exc.times)
        return frozenset(blocked)
