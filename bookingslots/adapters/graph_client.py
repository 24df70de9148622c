"""
Microsoft Graph API calendar source.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, NotFoundError, ProviderError
from ..domain.models import BusyInterval

logger = logging.getLogger(__name__)


class GraphCalendarSource:
    """
    Calendar source for an Outlook calendar via Microsoft Graph.

    Uses ``calendarView`` to read expanded events and the ``events``
    collection to create and delete bookings. Times are requested in UTC and
    converted to the configured time zone.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    PAGE_SIZE = 250

    def __init__(self, access_token: str, timezone: str = "UTC", session: Optional[requests.Session] = None):
        """
        Args:
            access_token: Valid Microsoft Graph access token
            timezone: IANA time zone the calendar is read in
            session: Optional HTTP session (defaults to a new requests.Session)
        """
        self.timezone = timezone
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def _calendar_url(self, calendar_id: str) -> str:
        if calendar_id in ("", "primary"):
            return f"{self.GRAPH_API_ENDPOINT}/me/calendar"
        return f"{self.GRAPH_API_ENDPOINT}/me/calendars/{quote(calendar_id, safe='')}"

    def fetch_busy_intervals(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyInterval]:
        """
        Get busy intervals from the calendar view of ``[time_min, time_max)``.

        Raises:
            ProviderError: If the API call fails
        """
        url: Optional[str] = f"{self._calendar_url(calendar_id)}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": time_min.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": time_max.in_timezone("UTC").to_iso8601_string(),
            "$top": self.PAGE_SIZE,
            "$orderby": "start/dateTime",
        }

        items: List[Dict[str, Any]] = []
        while url:
            data = self._request("GET", url, params=params)
            items.extend(data.get("value", []))
            # nextLink already carries the query
            url = data.get("@odata.nextLink")
            params = None

        intervals: List[BusyInterval] = []
        for item in items:
            interval = self._parse_event(item)
            if interval is not None:
                intervals.append(interval)
        return intervals

    def _parse_event(self, item: Dict[str, Any]) -> Optional[BusyInterval]:
        """
        Parse a Graph event into our domain model.

        Event format:
        {
            "id": "AAMk...",
            "isAllDay": false,
            "isCancelled": false,
            "showAs": "busy",
            "start": {"dateTime": "2024-11-25T11:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-11-25T12:00:00.0000000", "timeZone": "UTC"}
        }
        """
        if item.get("isCancelled") or item.get("showAs", "busy").lower() == "free":
            return None

        try:
            start_raw = item["start"]["dateTime"]
            end_raw = item["end"]["dateTime"]

            if item.get("isAllDay"):
                # All-day bounds arrive as local midnight converted to UTC
                return BusyInterval(
                    id=item.get("id", ""),
                    start=self._local_midnight(start_raw),
                    end=self._local_midnight(end_raw),
                    is_all_day=True,
                )

            return BusyInterval(
                id=item.get("id", ""),
                start=pendulum.parse(start_raw, tz="UTC").in_timezone(self.timezone),
                end=pendulum.parse(end_raw, tz="UTC").in_timezone(self.timezone),
            )
        except (KeyError, ValueError) as e:
            logger.warning("Could not parse calendar event %s: %s", item.get("id", "<unknown>"), e)
            return None

    def _local_midnight(self, raw: str) -> DateTime:
        local = pendulum.parse(raw, tz="UTC").in_timezone(self.timezone)
        return pendulum.datetime(local.year, local.month, local.day, tz=self.timezone)

    def create_event(
        self,
        calendar_id: str,
        interval: BusyInterval,
        summary: str,
        description: str,
    ) -> str:
        """
        Create an event and return its id.

        Raises:
            ProviderError: If the API call fails
        """
        payload = {
            "subject": summary,
            "body": {"contentType": "text", "content": description},
            "start": {"dateTime": interval.start.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss"), "timeZone": "UTC"},
            "end": {"dateTime": interval.end.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss"), "timeZone": "UTC"},
        }

        data = self._request("POST", f"{self._calendar_url(calendar_id)}/events", json=payload)

        event_id = data.get("id")
        if not event_id:
            raise ProviderError("Microsoft Graph did not return an id for the created event")
        return event_id

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """
        Delete an event.

        Raises:
            NotFoundError: If the event does not exist
            ProviderError: If the API call fails
        """
        self._request("DELETE", f"{self._calendar_url(calendar_id)}/events/{quote(event_id, safe='')}")
        return True

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, url, headers=self.headers, timeout=30, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Microsoft Graph request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Microsoft Graph resource not found: {url}")
        if response.status_code in (401, 403):
            raise AuthenticationError(f"Microsoft Graph refused access ({response.status_code})")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise ProviderError(f"Microsoft Graph request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Microsoft Graph returned a non-JSON response from {url}") from e
