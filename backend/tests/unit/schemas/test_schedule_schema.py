"""Tests for schedule and booking value objects."""

from datetime import date

from pydantic import ValidationError
import pytest

from booking_engine.core.enums import SessionModality
from booking_engine.schemas.booking import TimeSlot, make_slot_id
from booking_engine.schemas.schedule import (
    BlockedTimes,
    DaySchedule,
    ScheduleConfig,
    SessionPrices,
)


class TestDaySchedule:
    def test_parses_clock_times(self):
        day = DaySchedule(start="08:30", end="18:00", lunch_start="12:00", lunch_end="13:30")

        assert (day.start, day.end) == (510, 1080)
        assert day.has_lunch

    def test_start_equal_end_is_allowed(self):
        assert not DaySchedule(start="09:00", end="09:00").has_lunch

    def test_start_after_end(self):
        with pytest.raises(ValidationError):
            DaySchedule(start="18:00", end="09:00")

    @pytest.mark.parametrize(
        "lunch",
        [
            {"lunch_start": "12:00"},
            {"lunch_start": "13:00", "lunch_end": "12:00"},
            {"lunch_start": "08:00", "lunch_end": "09:30"},
        ],
    )
    def test_lunch_must_fit_inside_day(self, lunch):
        with pytest.raises(ValidationError):
            DaySchedule(start="09:00", end="17:00", **lunch)

    def test_is_frozen(self):
        day = DaySchedule(start="09:00", end="17:00")
        with pytest.raises(ValidationError):
            day.start = 0


class TestScheduleConfig:
    def test_json_round_trip(self, blocked_config):
        document = blocked_config.model_dump(mode="json")

        assert document["exceptions"][0]["kind"] == "blocked_date"
        assert ScheduleConfig.model_validate(document) == blocked_config

    def test_blocked_times_by_date(self, schedule_config):
        config = schedule_config.model_copy(
            update={
                "exceptions": (
                    BlockedTimes(date=date(2024, 1, 2), times=["09:00", "10:30"]),
                    BlockedTimes(date=date(2024, 1, 2), times=["14:00"]),
                )
            }
        )

        assert config.blocked_times_for(date(2024, 1, 2)) == frozenset({540, 630, 840})
        assert config.blocked_times_for(date(2024, 1, 3)) == frozenset()
        assert not config.is_date_blocked(date(2024, 1, 2))

    def test_weekday_lookup(self, schedule_config):
        assert schedule_config.weekly_schedule.for_date(date(2024, 1, 6)) is None
        assert schedule_config.weekly_schedule.for_date(date(2024, 1, 1)).start == 540


def test_price_table():
    prices = SessionPrices(initial=150, follow_up=120, online=100)

    assert prices.price_for(SessionModality.IN_PERSON, is_first_time=True) == 150
    assert prices.price_for(SessionModality.IN_PERSON) == 120
    assert prices.price_for(SessionModality.ONLINE, is_first_time=True) == 100


def test_slot_identity_survives_serialization():
    slot = TimeSlot(
        date=date(2024, 1, 2),
        start_minute=540,
        duration_minutes=50,
        modality=SessionModality.IN_PERSON,
        price=150,
    )
    payload = slot.model_dump(mode="json")

    assert payload["id"] == make_slot_id(date(2024, 1, 2), 540) == "2024-01-02-09:00"
    assert payload["time"] == "09:00"
    assert TimeSlot.model_validate(payload) == slot
