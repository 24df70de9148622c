"""
Core business logic for calculating free periods.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from pendulum import Date, DateTime

from .intervals import clipped_busy_spans, subtract_spans
from .models import BusyInterval, TimePeriod, WorkSchedule


def days_in_range(time_min: DateTime, time_max: DateTime) -> Iterator[DateTime]:
    """Yield the start of every calendar day from ``time_min``'s day until ``time_max``."""
    current = time_min.start_of("day")
    while current < time_max:
        yield current
        current = current.add(days=1)


class AvailabilityEngine:
    """
    Calculates free periods from a weekly schedule and busy intervals.

    Algorithm:
    1. Split busy intervals into all-day dates and timed intervals per day
    2. Skip non-working days and days vetoed by an all-day interval
    3. Clip each working window to the requested range
    4. Subtract the merged busy intervals from the window
    5. Return the remaining periods sorted by start time
    """

    def __init__(self, schedule: WorkSchedule):
        self.schedule = schedule

    def free_periods(
        self,
        time_min: DateTime,
        time_max: DateTime,
        busy_intervals: Iterable[BusyInterval]
    ) -> List[TimePeriod]:
        """
        Find all free periods between ``time_min`` and ``time_max``.

        Args:
            time_min: Start of the search period
            time_max: End of the search period
            busy_intervals: Busy intervals normalized to the calendar time zone

        Returns:
            Non-overlapping TimePeriod objects sorted by start time

        Raises:
            InvalidSchedule: If a day in range has no entry in the schedule
        """
        all_day_dates, timed_by_date = self._partition(busy_intervals)

        periods: List[TimePeriod] = []

        for day in days_in_range(time_min, time_max):
            work_day = self.schedule.for_date(day)

            if work_day.is_non_working or day.date() in all_day_dates:
                continue

            window = work_day.window_on(day)
            window_start = max(window.start, time_min)
            window_end = min(window.end, time_max)

            if window_start >= window_end:
                continue

            busy = clipped_busy_spans(
                timed_by_date.get(day.date(), []),
                window_start,
                window_end
            )

            periods.extend(
                TimePeriod(start=start, end=end)
                for start, end in subtract_spans(window_start, window_end, busy)
            )

        return sorted(periods, key=lambda period: period.start)

    @staticmethod
    def _partition(
        busy_intervals: Iterable[BusyInterval]
    ) -> Tuple[Set[Date], Dict[Date, List[BusyInterval]]]:
        """
        Collect all-day dates and group timed intervals by every day they touch.
        """
        all_day_dates: Set[Date] = set()
        timed_by_date: Dict[Date, List[BusyInterval]] = defaultdict(list)

        for interval in busy_intervals:
            if interval.is_all_day:
                all_day_dates.update(interval.covered_dates())
            else:
                for date in interval.covered_dates():
                    timed_by_date[date].append(interval)

        return all_day_dates, timed_by_date
