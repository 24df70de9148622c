"""
Application services for availability and bookings.

The service fetches busy intervals through a calendar source adapter, normalizes
them to the calendar time zone once, and delegates the calculations to the
domain layer. Dependency inversion toward a protocol lets tests plug in the
in-memory source instead of a real provider.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

import pendulum
from pendulum import Date, DateTime

from ..config import AppConfig
from ..domain.availability import AvailabilityEngine
from ..domain.booked_out import BookedOutDayDetector
from ..domain.duration_filter import SlotDurationFilter
from ..domain.models import BookingDetails, BusyInterval, TimePeriod, TimeSlot, WorkSchedule
from ..domain.slot_grid import SlotGridBuilder

logger = logging.getLogger(__name__)


class BusyIntervalSource(Protocol):
    """Protocol describing the calendar provider behaviour needed by the service."""

    def fetch_busy_intervals(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyInterval]:
        """Return busy intervals overlapping ``[time_min, time_max)``."""

    def create_event(
        self,
        calendar_id: str,
        interval: BusyInterval,
        summary: str,
        description: str,
    ) -> str:
        """Create an event and return its id."""

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event; raise NotFoundError when it does not exist."""


class AvailabilityService:
    """
    Orchestrates busy-interval retrieval and the availability calculations.

    Every public operation performs at most one fetch from the source; provider
    errors propagate unchanged.
    """

    def __init__(
        self,
        source: BusyIntervalSource,
        calendar_id: str,
        timezone: str,
        slot_interval_minutes: int = 15,
        same_day_hour_offset: float = 0,
    ) -> None:
        self._source = source
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.slot_interval_minutes = slot_interval_minutes
        self.same_day_hour_offset = same_day_hour_offset

    @classmethod
    def from_config(cls, source: BusyIntervalSource, config: AppConfig) -> "AvailabilityService":
        return cls(
            source=source,
            calendar_id=config.calendar_id,
            timezone=config.timezone,
            slot_interval_minutes=config.slot_interval_minutes,
            same_day_hour_offset=config.same_day_hour_offset,
        )

    def get_busy_intervals(self, time_min: DateTime, time_max: DateTime) -> List[BusyInterval]:
        """Fetch busy intervals and express them in the calendar time zone."""
        intervals = self._source.fetch_busy_intervals(
            self.calendar_id,
            time_min.in_timezone(self.timezone),
            time_max.in_timezone(self.timezone),
        )
        logger.debug(
            "Fetched %d busy interval(s) from %s for %s - %s",
            len(intervals),
            self.calendar_id,
            time_min,
            time_max,
        )
        return [interval.in_timezone(self.timezone) for interval in intervals]

    def build_calendar(
        self,
        shift_start: DateTime,
        shift_end: DateTime,
        granularity_minutes: Optional[int] = None,
        closed_before: Optional[DateTime] = None,
    ) -> List[TimeSlot]:
        """Build the slot grid of one shift from the calendar's busy intervals."""
        shift_start = shift_start.in_timezone(self.timezone)
        shift_end = shift_end.in_timezone(self.timezone)
        busy = self.get_busy_intervals(shift_start, shift_end)

        builder = SlotGridBuilder(granularity_minutes or self.slot_interval_minutes)
        return builder.build_grid(shift_start, shift_end, busy, closed_before=closed_before)

    def build_day_calendar(
        self,
        schedule: WorkSchedule,
        day: Date,
        now: Optional[DateTime] = None,
    ) -> List[TimeSlot]:
        """
        Build the slot grid for a day's working window.

        On the current day, slots starting before ``now`` plus the same-day
        offset are CLOSED. Non-working days have no grid.
        """
        work_day = schedule.for_date(day)
        if work_day.is_non_working:
            return []

        now = (now or pendulum.now(self.timezone)).in_timezone(self.timezone)
        window = work_day.window_on(pendulum.datetime(day.year, day.month, day.day, tz=self.timezone))

        closed_before = None
        if now.date() == day:
            closed_before = now.add(minutes=int(self.same_day_hour_offset * 60))

        return self.build_calendar(window.start, window.end, closed_before=closed_before)

    def available_times(self, grid: Sequence[TimeSlot], service_duration_minutes: int) -> List[TimeSlot]:
        """Start times in ``grid`` that can hold the requested service."""
        return SlotDurationFilter().available_starts(grid, service_duration_minutes)

    def free_time_slots(
        self,
        schedule: WorkSchedule,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[TimePeriod]:
        """Free periods in the range, sorted by start time."""
        time_min = time_min.in_timezone(self.timezone)
        time_max = time_max.in_timezone(self.timezone)
        busy = self.get_busy_intervals(time_min, time_max)

        return AvailabilityEngine(schedule).free_periods(time_min, time_max, busy)

    def booked_out_days(
        self,
        schedule: WorkSchedule,
        time_min: DateTime,
        time_max: DateTime,
        min_duration_minutes: int,
    ) -> List[Date]:
        """Dates in the range without a bookable period of ``min_duration_minutes``."""
        time_min = time_min.in_timezone(self.timezone)
        time_max = time_max.in_timezone(self.timezone)
        busy = self.get_busy_intervals(time_min, time_max)

        detector = BookedOutDayDetector(
            AvailabilityEngine(schedule),
            same_day_offset_hours=self.same_day_hour_offset,
        )
        return detector.booked_out_days(time_min, time_max, busy, min_duration_minutes)

    def create_booking(self, details: BookingDetails, booked_at: Optional[DateTime] = None) -> str:
        """Write a booking to the calendar and return the new event id."""
        booked_at = booked_at or pendulum.now(self.timezone)
        event_id = self._source.create_event(
            self.calendar_id,
            details.to_interval().in_timezone(self.timezone),
            details.summary(),
            details.description(booked_at),
        )
        logger.info("Created booking %s for %s %s", event_id, details.first_name, details.last_name)
        return event_id

    def cancel_booking(self, event_id: str) -> bool:
        """Delete a booking from the calendar."""
        deleted = self._source.delete_event(self.calendar_id, event_id)
        logger.info("Deleted booking %s", event_id)
        return deleted
