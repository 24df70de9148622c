"""
Tests for the availability engine - the core business logic.
"""

from datetime import time

import pendulum
import pytest

from bookingslots.domain.availability import AvailabilityEngine, days_in_range
from bookingslots.domain.exceptions import InvalidSchedule
from bookingslots.domain.models import BusyInterval, WorkDay, WorkSchedule

TZ = "Pacific/Auckland"


def _dt(value: str):
    return pendulum.parse(value, tz=TZ)


def _busy(start: str, end: str, event_id: str = "evt", all_day: bool = False) -> BusyInterval:
    return BusyInterval(id=event_id, start=_dt(start), end=_dt(end), is_all_day=all_day)


def _spans(periods):
    return [(p.start.format("YYYY-MM-DD HH:mm"), p.end.format("HH:mm")) for p in periods]


@pytest.fixture
def engine():
    """Monday to Friday, 09:00 - 17:00."""
    return AvailabilityEngine(WorkSchedule.standard(time(9, 0), time(17, 0)))


class TestDaysInRange:
    """Tests for the day iteration helper."""

    def test_includes_partial_first_day(self):
        days = list(days_in_range(_dt("2024-11-25 14:00"), _dt("2024-11-27 00:00")))

        assert [d.format("YYYY-MM-DD") for d in days] == ["2024-11-25", "2024-11-26"]

    def test_last_day_included_when_range_ends_inside_it(self):
        days = list(days_in_range(_dt("2024-11-25 00:00"), _dt("2024-11-26 08:00")))

        assert len(days) == 2


class TestAvailabilityEngine:
    """Tests for AvailabilityEngine.free_periods."""

    def test_empty_calendar_gives_whole_working_day(self, engine):
        periods = engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-26 00:00"), [])

        assert _spans(periods) == [("2024-11-25 09:00", "17:00")]

    def test_lunch_break_splits_day(self, engine):
        """Test a busy hour in the middle of the day."""
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-26 00:00"),
            [_busy("2024-11-25 12:00", "2024-11-25 13:00")]
        )

        assert _spans(periods) == [("2024-11-25 09:00", "12:00"), ("2024-11-25 13:00", "17:00")]

    def test_nested_interval_is_absorbed(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-26 00:00"),
            _dt("2024-11-27 00:00"),
            [
                _busy("2024-11-26 10:00", "2024-11-26 14:00", "colour"),
                _busy("2024-11-26 11:00", "2024-11-26 12:00", "trim"),
            ]
        )

        assert _spans(periods) == [("2024-11-26 09:00", "10:00"), ("2024-11-26 14:00", "17:00")]

    def test_overlapping_chain_merges(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-26 00:00"),
            [
                _busy("2024-11-25 10:00", "2024-11-25 11:00", "a"),
                _busy("2024-11-25 10:30", "2024-11-25 12:00", "b"),
                _busy("2024-11-25 12:00", "2024-11-25 12:30", "c"),
            ]
        )

        assert _spans(periods) == [("2024-11-25 09:00", "10:00"), ("2024-11-25 12:30", "17:00")]

    def test_fully_booked_day_has_no_periods(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-26 00:00"),
            [_busy("2024-11-25 08:00", "2024-11-25 18:00")]
        )

        assert periods == []

    def test_interval_crossing_end_of_day(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-26 00:00"),
            [_busy("2024-11-25 16:00", "2024-11-25 19:00")]
        )

        assert _spans(periods) == [("2024-11-25 09:00", "16:00")]

    def test_all_day_event_vetoes_the_day(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-28 00:00"),
            [_busy("2024-11-26", "2024-11-27", "training", all_day=True)]
        )

        assert [p.start.format("YYYY-MM-DD") for p in periods] == ["2024-11-25", "2024-11-27"]

    def test_weekend_is_skipped(self, engine):
        periods = engine.free_periods(_dt("2024-11-22 00:00"), _dt("2024-11-26 00:00"), [])

        # Friday and Monday only
        assert [p.start.format("YYYY-MM-DD") for p in periods] == ["2024-11-22", "2024-11-25"]

    def test_window_is_clipped_to_time_min(self, engine):
        periods = engine.free_periods(
            _dt("2024-11-25 14:10"),
            _dt("2024-11-26 00:00"),
            [_busy("2024-11-25 12:00", "2024-11-25 13:00")]
        )

        assert _spans(periods) == [("2024-11-25 14:10", "17:00")]

    def test_window_is_clipped_to_time_max(self, engine):
        periods = engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-25 11:00"), [])

        assert _spans(periods) == [("2024-11-25 09:00", "11:00")]

    def test_time_min_after_closing_gives_nothing(self, engine):
        periods = engine.free_periods(_dt("2024-11-25 18:00"), _dt("2024-11-26 00:00"), [])

        assert periods == []

    def test_timed_event_over_several_days(self, engine):
        """A timed event from Monday afternoon to Wednesday morning blocks all of Tuesday."""
        periods = engine.free_periods(
            _dt("2024-11-25 00:00"),
            _dt("2024-11-28 00:00"),
            [_busy("2024-11-25 15:00", "2024-11-27 10:00", "conference")]
        )

        assert _spans(periods) == [("2024-11-25 09:00", "15:00"), ("2024-11-27 10:00", "17:00")]

    def test_missing_schedule_entry_raises(self):
        engine = AvailabilityEngine(
            WorkSchedule(days=[WorkDay(day_of_week=0, start_time=time(9, 0), end_time=time(17, 0))])
        )

        with pytest.raises(InvalidSchedule):
            engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-27 00:00"), [])

    def test_different_hours_per_day(self):
        schedule = WorkSchedule(days=[
            WorkDay(day_of_week=weekday, start_time=time(9, 0), end_time=time(17, 0))
            for weekday in range(5)
        ] + [
            WorkDay(day_of_week=5, start_time=time(10, 0), end_time=time(14, 0)),
            WorkDay(day_of_week=6, start_time=time(0, 0), end_time=time(0, 0), is_non_working=True),
        ])

        periods = AvailabilityEngine(schedule).free_periods(
            _dt("2024-11-23 00:00"), _dt("2024-11-25 00:00"), []
        )

        assert _spans(periods) == [("2024-11-23 10:00", "14:00")]

    def test_periods_are_sorted_and_disjoint(self, engine):
        busy = [
            _busy("2024-11-26 15:00", "2024-11-26 15:30", "d"),
            _busy("2024-11-25 09:30", "2024-11-25 10:00", "a"),
            _busy("2024-11-25 13:00", "2024-11-25 13:00", "zero"),
            _busy("2024-11-26 09:00", "2024-11-26 09:45", "c"),
        ]

        periods = engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-27 00:00"), busy)

        for period, following in zip(periods, periods[1:]):
            assert period.end <= following.start
        for period in periods:
            assert period.start < period.end
            assert not any(b.overlaps(period.start, period.end) and b.end > b.start for b in busy)

    def test_same_input_gives_same_output(self, engine):
        busy = [_busy("2024-11-25 12:00", "2024-11-25 13:00")]

        first = engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-30 00:00"), busy)
        second = engine.free_periods(_dt("2024-11-25 00:00"), _dt("2024-11-30 00:00"), busy)

        assert first == second
