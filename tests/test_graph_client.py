"""
Tests for the Microsoft Graph calendar source with a stubbed HTTP session.
"""

import json
from typing import Any, Dict, List

import pendulum
import pytest
import requests

from bookingslots.adapters.graph_client import GraphCalendarSource
from bookingslots.domain.exceptions import AuthenticationError, NotFoundError, ProviderError
from bookingslots.domain.models import BusyInterval

TZ = "Pacific/Auckland"


def _response(status_code: int, payload: Any = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return response


class StubSession:
    """Returns queued responses and records each request."""

    def __init__(self, responses: List[requests.Response]):
        self._responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        return self._responses.pop(0)


def _window():
    return pendulum.datetime(2024, 11, 25, tz=TZ), pendulum.datetime(2024, 11, 26, tz=TZ)


class TestGraphCalendarSource:
    """Tests for GraphCalendarSource."""

    def test_fetch_parses_calendar_view(self):
        session = StubSession([_response(200, {"value": [
            {
                "id": "timed",
                "showAs": "busy",
                "start": {"dateTime": "2024-11-24T23:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2024-11-25T00:00:00.0000000", "timeZone": "UTC"},
            },
            {
                "id": "holiday",
                "isAllDay": True,
                # Auckland midnight of 27 November, expressed in UTC
                "start": {"dateTime": "2024-11-26T11:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2024-11-27T11:00:00.0000000", "timeZone": "UTC"},
            },
            {
                "id": "tentative-free",
                "showAs": "free",
                "start": {"dateTime": "2024-11-24T21:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2024-11-24T22:00:00.0000000", "timeZone": "UTC"},
            },
            {"id": "cancelled", "isCancelled": True},
        ]})])
        source = GraphCalendarSource("token", timezone=TZ, session=session)

        intervals = source.fetch_busy_intervals("primary", *_window())

        assert [interval.id for interval in intervals] == ["timed", "holiday"]
        assert intervals[0].start == pendulum.datetime(2024, 11, 25, 12, tz=TZ)
        assert intervals[1].is_all_day
        assert intervals[1].start == pendulum.datetime(2024, 11, 27, tz=TZ)
        assert intervals[1].end == pendulum.datetime(2024, 11, 28, tz=TZ)
        assert intervals[1].covered_dates() == [pendulum.date(2024, 11, 27)]

        sent = session.requests[0]
        assert sent["url"] == "https://graph.microsoft.com/v1.0/me/calendar/calendarView"
        assert sent["params"]["startDateTime"] == "2024-11-24T11:00:00Z"
        assert sent["headers"]["Authorization"] == "Bearer token"

    def test_fetch_follows_next_link(self):
        next_link = "https://graph.microsoft.com/v1.0/me/calendar/calendarView?$skip=250"
        session = StubSession([
            _response(200, {"value": [], "@odata.nextLink": next_link}),
            _response(200, {"value": []}),
        ])
        source = GraphCalendarSource("token", timezone=TZ, session=session)

        source.fetch_busy_intervals("team-calendar", *_window())

        assert session.requests[0]["url"].endswith("/me/calendars/team-calendar/calendarView")
        assert session.requests[1]["url"] == next_link
        assert session.requests[1]["params"] is None

    def test_create_event(self):
        session = StubSession([_response(201, {"id": "AAMk-new"})])
        source = GraphCalendarSource("token", timezone=TZ, session=session)
        interval = BusyInterval(
            id="",
            start=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
            end=pendulum.datetime(2024, 11, 25, 11, tz=TZ),
        )

        event_id = source.create_event("primary", interval, "Jane Doe", "Booked")

        assert event_id == "AAMk-new"
        payload = session.requests[0]["json"]
        assert payload["subject"] == "Jane Doe"
        assert payload["start"] == {"dateTime": "2024-11-24T21:00:00", "timeZone": "UTC"}

    def test_delete_missing_event(self):
        session = StubSession([_response(404, {"error": {"code": "ErrorItemNotFound"}})])
        source = GraphCalendarSource("token", timezone=TZ, session=session)

        with pytest.raises(NotFoundError):
            source.delete_event("primary", "missing")

    def test_expired_token(self):
        session = StubSession([_response(401, {"error": {"code": "InvalidAuthenticationToken"}})])
        source = GraphCalendarSource("token", timezone=TZ, session=session)

        with pytest.raises(AuthenticationError):
            source.fetch_busy_intervals("primary", *_window())

    def test_non_json_body_is_provider_error(self):
        response = requests.Response()
        response.status_code = 200
        response._content = b"<html><body>Proxy login</body></html>"
        source = GraphCalendarSource("token", timezone=TZ, session=StubSession([response]))

        with pytest.raises(ProviderError, match="non-JSON"):
            source.fetch_busy_intervals("primary", *_window())
