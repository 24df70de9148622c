"""
Domain models for the weekly work schedule, busy intervals, slots and free periods.
"""

from dataclasses import dataclass, field, replace
from datetime import time
from enum import Enum
from typing import Iterable, List, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInterval, InvalidSchedule


WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


@dataclass(frozen=True)
class TimePeriod:
    """
    A free window inside a single working day.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInterval(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)


@dataclass(frozen=True)
class WorkDay:
    """
    Working hours for one day of the week.

    day_of_week follows datetime.weekday(): 0=Monday, 6=Sunday.
    """
    day_of_week: int
    start_time: time
    end_time: time
    is_non_working: bool = False

    def __post_init__(self):
        if self.day_of_week not in range(7):
            raise InvalidSchedule(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if not self.is_non_working and self.start_time >= self.end_time:
            raise InvalidSchedule(
                f"{self.name}: start {self.start_time} must be before end {self.end_time}"
            )

    @property
    def name(self) -> str:
        return WEEKDAY_NAMES[self.day_of_week]

    def window_on(self, day: DateTime) -> TimePeriod:
        """Get the working window on the calendar day of ``day``."""
        start = day.set(
            hour=self.start_time.hour,
            minute=self.start_time.minute,
            second=0,
            microsecond=0
        )
        end = day.set(
            hour=self.end_time.hour,
            minute=self.end_time.minute,
            second=0,
            microsecond=0
        )

        return TimePeriod(start=start, end=end)


@dataclass(frozen=True)
class WorkSchedule:
    """
    Immutable weekly template: at most one WorkDay per day of the week.
    """
    days: Tuple[WorkDay, ...]

    def __post_init__(self):
        days = tuple(self.days)
        seen = set()
        for work_day in days:
            if work_day.day_of_week in seen:
                raise InvalidSchedule(f"Duplicate entry for {work_day.name}")
            seen.add(work_day.day_of_week)
        object.__setattr__(self, "days", days)

    @classmethod
    def standard(
        cls,
        start_time: time,
        end_time: time,
        non_working_weekdays: Iterable[int] = (5, 6)
    ) -> "WorkSchedule":
        """Same hours every day, with the given weekdays off."""
        off = set(non_working_weekdays)
        return cls(days=tuple(
            WorkDay(
                day_of_week=weekday,
                start_time=start_time,
                end_time=end_time,
                is_non_working=weekday in off
            )
            for weekday in range(7)
        ))

    def for_weekday(self, weekday: int) -> WorkDay:
        for work_day in self.days:
            if work_day.day_of_week == weekday:
                return work_day
        raise InvalidSchedule(f"Work schedule has no entry for {WEEKDAY_NAMES[weekday]}")

    def for_date(self, day: Date) -> WorkDay:
        """Get the WorkDay for a date (or datetime)."""
        return self.for_weekday(day.weekday())

    def is_working_day(self, day: Date) -> bool:
        return not self.for_date(day).is_non_working


@dataclass(frozen=True)
class BusyInterval:
    """
    A committed interval from the external calendar.

    All-day intervals are anchored at local midnight and only their calendar
    dates are meaningful; ``end`` is exclusive.
    """
    id: str
    start: DateTime
    end: DateTime
    is_all_day: bool = False

    def __post_init__(self):
        if self.end < self.start:
            raise InvalidInterval(
                f"Busy interval {self.id or '<new>'} ends ({self.end}) before it starts ({self.start})"
            )

    def in_timezone(self, tz: str) -> "BusyInterval":
        """Return a copy expressed in ``tz``; all-day intervals keep their dates."""
        if self.is_all_day:
            return replace(
                self,
                start=pendulum.datetime(self.start.year, self.start.month, self.start.day, tz=tz),
                end=pendulum.datetime(self.end.year, self.end.month, self.end.day, tz=tz)
            )
        return replace(self, start=self.start.in_timezone(tz), end=self.end.in_timezone(tz))

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        return self.start < end and self.end > start

    def covered_dates(self) -> List[Date]:
        """Calendar dates this interval touches (an end at midnight is exclusive)."""
        first = self.start.date()
        last = self.end.date()
        if self.end > self.start and self.end == self.end.start_of("day"):
            last = last.subtract(days=1)

        dates: List[Date] = []
        current = first
        while current <= last:
            dates.append(current)
            current = current.add(days=1)
        return dates or [first]


class SlotStatus(str, Enum):
    OPEN = "open"
    RESERVED = "reserved"
    CLOSED = "closed"


@dataclass(frozen=True, eq=False)
class TimeSlot:
    """
    One slot in a shift grid.

    Slots are identified by their start time: two slots starting at the same
    instant are equal whatever their end or status.
    """
    start: DateTime
    end: DateTime
    status: SlotStatus = SlotStatus.OPEN
    outside_interval: bool = False  # boundary taken from a busy interval, not the grid

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInterval(f"Slot start {self.start} must be before end {self.end}")

    @property
    def is_open(self) -> bool:
        return self.status is SlotStatus.OPEN

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def __eq__(self, other):
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return self.start == other.start

    def __lt__(self, other: "TimeSlot") -> bool:
        return self.start < other.start

    def __hash__(self) -> int:
        return hash(self.start)


@dataclass
class BookingDetails:
    """
    A customer booking to be written to the calendar.
    """
    start: DateTime
    end: DateTime
    first_name: str
    last_name: str
    email: str
    phone: str
    services: List[str] = field(default_factory=list)

    def to_interval(self) -> BusyInterval:
        return BusyInterval(id="", start=self.start, end=self.end)

    def summary(self) -> str:
        """Event title, e.g. ``Jane Doe (021 555 0101) Cut, Colour``."""
        return f"{self.first_name} {self.last_name} ({self.phone}) {', '.join(self.services)}"

    def description(self, booked_at: DateTime) -> str:
        return "\n".join([
            f"Booked at {booked_at.format('dddd D MMMM YYYY, h:mm A')}",
            self.phone,
            ", ".join(self.services),
            self.email,
        ])
