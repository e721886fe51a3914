"""Tests for availability resolution and the month calendar."""

from datetime import date, datetime

import pytest

from booking_engine.core.enums import BlockReason, SessionModality
from booking_engine.schemas.booking import Appointment, TimeSlot
from booking_engine.schemas.schedule import BlockedDate, BlockedTimes
from booking_engine.services.availability_resolver import (
    block_reason_for,
    booking_horizon,
    build_calendar_month,
    calendar_grid_start,
    has_available_slots,
    month_bounds,
    resolve_day,
)
from booking_engine.services.conflict_checker import conflicts_with

NOW = datetime(2024, 1, 1, 8, 0)
TUESDAY = date(2024, 1, 2)


def _appointment(start: int, day: date = TUESDAY, duration: int = 50) -> Appointment:
    return Appointment(
        id=f"apt-{day.isoformat()}-{start}",
        provider_id="provider-1",
        date=day,
        start_minute=start,
        duration_minutes=duration,
        modality=SessionModality.IN_PERSON,
    )


def _reasons(slots):
    return {slot.time: slot.block_reason for slot in slots}


class TestResolveDay:
    def test_open_day_is_fully_available(self, schedule_config):
        slots = resolve_day(TUESDAY, schedule_config, [], NOW)

        assert len(slots) == 12
        assert all(slot.is_available for slot in slots)
        assert has_available_slots(slots)

    def test_buffered_appointment_blocks_overlapping_candidates(self, schedule_config):
        """14:00-14:50 with a 10 minute buffer blocks everything touching 13:50-15:00."""
        existing = _appointment(14 * 60)
        slots = resolve_day(TUESDAY, schedule_config, [existing], NOW)

        blocked = [slot.time for slot in slots if not slot.is_available]
        assert blocked == ["13:30", "14:00", "14:30"]
        assert {slot.block_reason for slot in slots if not slot.is_available} == {"conflict"}
        reasons = _reasons(slots)
        assert reasons["13:00"] is None
        assert reasons["15:00"] is None

    def test_blocked_date_blocks_every_slot(self, schedule_config):
        config = schedule_config.model_copy(update={"exceptions": (BlockedDate(date=TUESDAY),)})
        slots = resolve_day(TUESDAY, config, [], NOW)

        assert slots
        assert {slot.block_reason for slot in slots} == {"date blocked"}
        assert not has_available_slots(slots)

    def test_blocked_times_match_exact_starts_only(self, schedule_config):
        config = schedule_config.model_copy(
            update={"exceptions": (BlockedTimes(date=TUESDAY, times=["09:00", "14:30"]),)}
        )
        reasons = _reasons(resolve_day(TUESDAY, config, [], NOW))

        assert reasons["09:00"] == "time blocked"
        assert reasons["14:30"] == "time blocked"
        assert reasons["09:30"] is None

    def test_slots_before_now_are_past(self, schedule_config):
        reasons = _reasons(resolve_day(TUESDAY, schedule_config, [], datetime(2024, 1, 2, 10, 0)))

        assert reasons["09:00"] == "past"
        assert reasons["09:30"] == "past"
        assert reasons["10:00"] is None

    def test_booking_horizon(self, schedule_config):
        assert booking_horizon(NOW, 30) == date(2024, 1, 31)

        far = resolve_day(date(2024, 2, 5), schedule_config, [], NOW)
        assert far
        assert {slot.block_reason for slot in far} == {"beyond booking horizon"}

        weekend_slot = TimeSlot(
            date=date(2024, 1, 20),
            start_minute=600,
            duration_minutes=50,
            modality=SessionModality.IN_PERSON,
            price=120,
        )
        assert block_reason_for(weekend_slot, schedule_config, [], NOW) is None

    def test_appointments_on_other_dates_are_ignored(self, schedule_config):
        other_day = _appointment(9 * 60, day=date(2024, 1, 3))
        slots = resolve_day(TUESDAY, schedule_config, [other_day], NOW)
        assert all(slot.is_available for slot in slots)


class TestPrecedence:
    def test_date_block_wins_over_past(self, schedule_config):
        config = schedule_config.model_copy(update={"exceptions": (BlockedDate(date=TUESDAY),)})
        late = datetime(2024, 1, 2, 18, 0)
        assert {slot.block_reason for slot in resolve_day(TUESDAY, config, [], late)} == {
            "date blocked"
        }

    def test_time_block_wins_over_conflict(self, schedule_config):
        config = schedule_config.model_copy(
            update={"exceptions": (BlockedTimes(date=TUESDAY, times=["09:00"]),)}
        )
        reasons = _reasons(resolve_day(TUESDAY, config, [_appointment(9 * 60)], NOW))

        assert reasons["09:00"] == "time blocked"
        assert reasons["09:30"] == "conflict"

    def test_past_wins_over_conflict(self, schedule_config):
        reasons = _reasons(
            resolve_day(TUESDAY, schedule_config, [_appointment(9 * 60)], datetime(2024, 1, 2, 12, 0))
        )
        assert reasons["09:00"] == "past"

    def test_reasons_follow_enum_values(self):
        assert [reason.value for reason in BlockReason] == [
            "date blocked",
            "time blocked",
            "past",
            "beyond booking horizon",
            "conflict",
        ]


class TestProperties:
    def test_resolution_is_pure(self, schedule_config):
        appointments = [_appointment(9 * 60), _appointment(14 * 60)]
        first = resolve_day(TUESDAY, schedule_config, appointments, NOW)
        second = resolve_day(TUESDAY, schedule_config, appointments, NOW)

        assert [slot.model_dump_json() for slot in first] == [
            slot.model_dump_json() for slot in second
        ]

    @pytest.mark.parametrize("buffer_minutes", [0, 10, 25])
    def test_no_available_slot_overlaps_an_appointment(self, schedule_config, buffer_minutes):
        config = schedule_config.model_copy(
            update={
                "policy": schedule_config.policy.model_copy(
                    update={"buffer_minutes": buffer_minutes}
                )
            }
        )
        appointments = [_appointment(570), _appointment(840, duration=30), _appointment(960)]
        for slot in resolve_day(TUESDAY, config, appointments, NOW):
            if slot.is_available:
                for appointment in appointments:
                    assert not conflicts_with(
                        slot.start_minute, slot.duration_minutes, appointment, buffer_minutes
                    )


class TestCalendarMonth:
    def test_grid_starts_on_sunday_before_first(self):
        assert calendar_grid_start(2024, 1) == date(2023, 12, 31)
        assert calendar_grid_start(2024, 2) == date(2024, 1, 28)
        # September 2024 starts on a Sunday
        assert calendar_grid_start(2024, 9) == date(2024, 9, 1)

    def test_month_bounds(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_january_grid(self, blocked_config):
        days = build_calendar_month(2024, 1, blocked_config, {}, NOW)
        by_date = {day.date: day for day in days}

        assert len(days) == 42
        assert days[0].date == date(2023, 12, 31)
        assert days[-1].date == date(2024, 2, 10)

        leading = by_date[date(2023, 12, 31)]
        assert not leading.is_current_month
        assert leading.slots == []
        assert leading.is_past

        today = by_date[date(2024, 1, 1)]
        assert today.is_today
        assert today.has_available_slots

        assert not by_date[date(2024, 1, 6)].has_available_slots  # Saturday
        assert by_date[date(2024, 1, 3)].is_past  # blocked date
        assert not by_date[date(2024, 1, 31)].is_past  # last day inside the horizon

    def test_fully_booked_day_has_no_available_slots(self, schedule_config):
        full_day = [_appointment(start) for start in (540, 600, 660, 780, 840, 900, 960)]
        days = build_calendar_month(2024, 1, schedule_config, {TUESDAY: full_day}, NOW)
        tuesday = next(day for day in days if day.date == TUESDAY)

        assert tuesday.slots
        assert not tuesday.has_available_slots

    def test_invalid_month_is_rejected(self, schedule_config):
        with pytest.raises(ValueError):
            build_calendar_month(2024, 13, schedule_config, {}, NOW)
