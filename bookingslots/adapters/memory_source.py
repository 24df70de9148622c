"""
In-memory calendar source for offline use and tests.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFoundError, ProviderError
from ..domain.models import BusyInterval

logger = logging.getLogger(__name__)


class InMemoryCalendarSource:
    """
    Calendar source that keeps events in a dictionary.

    Events can be seeded from a JSON file shaped like::

        [
            {"id": "evt-1", "start": "2024-11-25T12:00:00", "end": "2024-11-25T13:00:00"},
            {"id": "evt-2", "start": "2024-11-26", "end": "2024-11-27", "all_day": true}
        ]

    A bare date (``YYYY-MM-DD``) also marks the event as all-day.
    """

    def __init__(self, intervals: Iterable[BusyInterval] = (), timezone: str = "UTC"):
        self.timezone = timezone
        self._events: Dict[str, BusyInterval] = {}
        for interval in intervals:
            self._store(interval)

    @classmethod
    def from_json_file(cls, data_file: Path, timezone: str = "UTC") -> "InMemoryCalendarSource":
        """Load events from a JSON file; a missing file gives an empty calendar."""
        if not data_file.exists():
            logger.warning("Events file %s not found, starting with an empty calendar", data_file)
            return cls(timezone=timezone)

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                raw_events = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ProviderError(f"Could not read events file {data_file}: {exc}") from exc

        source = cls(timezone=timezone)
        for raw in raw_events:
            interval = source._parse_event(raw)
            if interval is not None:
                source._store(interval)
        return source

    def _parse_event(self, raw: dict) -> Optional[BusyInterval]:
        try:
            start_raw = raw["start"]
            end_raw = raw["end"]
            is_all_day = bool(raw.get("all_day")) or len(start_raw) == 10
            return BusyInterval(
                id=str(raw.get("id") or uuid.uuid4().hex),
                start=pendulum.parse(start_raw, tz=self.timezone),
                end=pendulum.parse(end_raw, tz=self.timezone),
                is_all_day=is_all_day,
            )
        except (KeyError, TypeError, ValueError) as exc:
            # Skip invalid events
            logger.warning("Skipping unparseable event %r: %s", raw, exc)
            return None

    def _store(self, interval: BusyInterval) -> str:
        event_id = interval.id or uuid.uuid4().hex
        self._events[event_id] = BusyInterval(
            id=event_id,
            start=interval.start,
            end=interval.end,
            is_all_day=interval.is_all_day,
        )
        return event_id

    def fetch_busy_intervals(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyInterval]:
        """Events overlapping the window, ordered by start time."""
        matching = [
            interval for interval in self._events.values()
            if interval.start < time_max and interval.end > time_min
        ]
        return sorted(matching, key=lambda interval: interval.start)

    def create_event(
        self,
        calendar_id: str,
        interval: BusyInterval,
        summary: str,
        description: str,
    ) -> str:
        event_id = self._store(interval)
        logger.debug("Stored event %s (%s) in %s", event_id, summary, calendar_id)
        return event_id

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        if event_id not in self._events:
            raise NotFoundError(f"Event {event_id} not found in calendar {calendar_id}")
        del self._events[event_id]
        return True
