"""
Google Calendar API v3 source using a service account.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pendulum
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, ConfigurationError, NotFoundError, ProviderError
from ..domain.models import BusyInterval

logger = logging.getLogger(__name__)


class GoogleCalendarSource:
    """
    Reads and writes events of one Google calendar.

    Uses the ``events`` collection: ``list`` for busy intervals (expanded
    recurring events, ordered by start), ``insert`` and ``delete`` for bookings.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"
    SCOPES = ["https://www.googleapis.com/auth/calendar"]
    MAX_RESULTS = 250

    def __init__(self, session: requests.Session, timezone: str = "UTC"):
        """
        Args:
            session: Authorized HTTP session (an AuthorizedSession in production)
            timezone: IANA time zone the calendar is read in
        """
        self.session = session
        self.timezone = timezone

    @classmethod
    def from_service_account_file(cls, credentials_file: Path, timezone: str = "UTC") -> "GoogleCalendarSource":
        """
        Build a source from a service account key file.

        Raises:
            ConfigurationError: If the key file cannot be read
            AuthenticationError: If the key file is not a valid service account key
        """
        try:
            credentials = service_account.Credentials.from_service_account_file(
                str(credentials_file),
                scopes=cls.SCOPES
            )
        except OSError as exc:
            raise ConfigurationError(f"Cannot read service account file {credentials_file}: {exc}") from exc
        except (ValueError, GoogleAuthError) as exc:
            raise AuthenticationError(f"Invalid service account file {credentials_file}: {exc}") from exc

        return cls(AuthorizedSession(credentials), timezone=timezone)

    def _events_url(self, calendar_id: str) -> str:
        return f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}/events"

    def fetch_busy_intervals(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyInterval]:
        """
        Get the busy intervals overlapping ``[time_min, time_max)``.

        Raises:
            ProviderError: If the API call fails
        """
        params: Dict[str, Any] = {
            "timeMin": time_min.in_timezone("UTC").to_iso8601_string(),
            "timeMax": time_max.in_timezone("UTC").to_iso8601_string(),
            "singleEvents": "true",  # needed for orderBy=startTime
            "orderBy": "startTime",
            "showDeleted": "false",
            "maxResults": self.MAX_RESULTS,
            "timeZone": self.timezone,
        }

        items: List[Dict[str, Any]] = []
        while True:
            data = self._request("GET", self._events_url(calendar_id), params=params)
            items.extend(data.get("items", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        logger.debug("Google calendar %s returned %d event(s)", calendar_id, len(items))

        intervals: List[BusyInterval] = []
        for item in items:
            interval = self._parse_event(item)
            if interval is not None:
                intervals.append(interval)
        return intervals

    def _parse_event(self, item: Dict[str, Any]) -> Optional[BusyInterval]:
        """
        Convert an API event into a BusyInterval.

        All-day events carry ``start.date`` / ``end.date`` (end exclusive),
        timed events ``start.dateTime`` / ``end.dateTime`` with an offset.
        Cancelled events and events shown as free return None.
        """
        if item.get("status") == "cancelled" or item.get("transparency") == "transparent":
            return None

        start = item.get("start", {})
        end = item.get("end", {})

        try:
            if "date" in start:
                return BusyInterval(
                    id=item.get("id", ""),
                    start=pendulum.parse(start["date"], tz=self.timezone),
                    end=pendulum.parse(end["date"], tz=self.timezone),
                    is_all_day=True,
                )

            return BusyInterval(
                id=item.get("id", ""),
                start=pendulum.parse(start["dateTime"]).in_timezone(self.timezone),
                end=pendulum.parse(end["dateTime"]).in_timezone(self.timezone),
            )
        except (KeyError, ValueError) as exc:
            logger.warning("Could not parse event %s: %s", item.get("id", "<unknown>"), exc)
            return None

    def create_event(
        self,
        calendar_id: str,
        interval: BusyInterval,
        summary: str,
        description: str,
    ) -> str:
        """
        Insert a timed event and return its id.

        Raises:
            ProviderError: If the API call fails
        """
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": interval.start.in_timezone("UTC").to_iso8601_string(), "timeZone": "UTC"},
            "end": {"dateTime": interval.end.in_timezone("UTC").to_iso8601_string(), "timeZone": "UTC"},
        }

        data = self._request("POST", self._events_url(calendar_id), json=body)

        event_id = data.get("id")
        if not event_id:
            raise ProviderError("Google Calendar did not return an id for the created event")
        return event_id

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """
        Delete an event.

        Raises:
            NotFoundError: If the event does not exist (or was already deleted)
            ProviderError: If the API call fails
        """
        self._request("DELETE", f"{self._events_url(calendar_id)}/{quote(event_id, safe='')}")
        return True

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, url, timeout=30, **kwargs)
        except GoogleAuthError as exc:
            raise AuthenticationError(f"Google authentication failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Google Calendar request failed: {exc}") from exc

        if response.status_code in (404, 410):
            raise NotFoundError(f"Google Calendar resource not found: {url}")
        if response.status_code in (401, 403):
            raise AuthenticationError(f"Google Calendar refused access ({response.status_code}): {url}")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise ProviderError(f"Google Calendar request failed: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"Google Calendar returned a non-JSON response from {url}") from exc
