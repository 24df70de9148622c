"""
Detection of days that can no longer take a booking.
"""

from collections import defaultdict
from typing import Dict, Iterable, List

from pendulum import Date, DateTime

from .availability import AvailabilityEngine, days_in_range
from .models import BusyInterval, TimePeriod


class BookedOutDayDetector:
    """
    Flags the dates in a range that have no free period long enough to book.

    The first date of the range is also subject to the same-day cutoff: free
    time before ``time_min + same_day_offset_hours`` is not bookable any more.
    """

    def __init__(self, engine: AvailabilityEngine, same_day_offset_hours: float = 0):
        self.engine = engine
        self.same_day_offset_hours = same_day_offset_hours

    def booked_out_days(
        self,
        time_min: DateTime,
        time_max: DateTime,
        busy_intervals: Iterable[BusyInterval],
        min_duration_minutes: int
    ) -> List[Date]:
        """
        Args:
            time_min: Start of the range (usually "now")
            time_max: End of the range
            busy_intervals: Busy intervals normalized to the calendar time zone
            min_duration_minutes: Shortest bookable period

        Returns:
            Booked-out dates in ascending order
        """
        periods = self.engine.free_periods(time_min, time_max, busy_intervals)

        periods_by_date: Dict[Date, List[TimePeriod]] = defaultdict(list)
        for period in periods:
            periods_by_date[period.start.date()].append(period)

        first_date = time_min.date()
        cutoff = time_min.add(minutes=int(self.same_day_offset_hours * 60))
        booked_out: List[Date] = []

        for day in days_in_range(time_min, time_max):
            date = day.date()

            if not self.engine.schedule.is_working_day(date):
                booked_out.append(date)
                continue

            day_periods = periods_by_date.get(date, [])
            if date == first_date:
                day_periods = self._after_cutoff(day_periods, cutoff)

            if not any(period.duration_minutes() >= min_duration_minutes for period in day_periods):
                booked_out.append(date)

        return sorted(set(booked_out))

    @staticmethod
    def _after_cutoff(periods: List[TimePeriod], cutoff: DateTime) -> List[TimePeriod]:
        """Trim periods to the part that starts at or after ``cutoff``."""
        return [
            TimePeriod(start=max(period.start, cutoff), end=period.end)
            for period in periods
            if period.end > cutoff
        ]
