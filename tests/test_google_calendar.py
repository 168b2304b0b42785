"""
Google Calendar adapter against a mocked HTTP transport.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from app.application.exceptions import CalendarError
from app.infrastructure.calendar.google_calendar import TOKEN_URL, GoogleCalendar, GoogleTokenProvider


class FakeGoogle:
    """Records requests and answers token, freeBusy and events calls."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.tokens_issued = 0
        self.reject_next_with_401 = False
        self.busy = [{"start": "2026-03-05T20:00:00Z", "end": "2026-03-05T21:00:00Z"}]
        self.event_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == TOKEN_URL:
            self.tokens_issued += 1
            return httpx.Response(200, json={"access_token": f"tok_{self.tokens_issued}", "expires_in": 3600})

        if self.reject_next_with_401:
            self.reject_next_with_401 = False
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        if request.url.path.endswith("/freeBusy"):
            return httpx.Response(200, json={"calendars": {"primary": {"busy": self.busy}}})
        if request.url.path.endswith("/events") and request.method == "POST":
            if self.event_status >= 400:
                return httpx.Response(self.event_status, text="backend error")
            return httpx.Response(200, json={"id": "evt_123"})
        if request.method == "PATCH":
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})
        return httpx.Response(404)


@pytest.fixture
def google():
    return FakeGoogle()


@pytest.fixture
def calendar(google):
    client = httpx.Client(transport=httpx.MockTransport(google))
    tokens = GoogleTokenProvider("client_id", "client_secret", "refresh_token", client=client)
    return GoogleCalendar(tokens, calendar_id="primary", timezone="America/Denver", client=client)


def test_free_busy_parses_blocks(calendar, google, tz):
    blocks = calendar.free_busy(datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 6, tzinfo=tz))

    assert [(b.start, b.end) for b in blocks] == [
        (datetime(2026, 3, 5, 20, 0, tzinfo=timezone.utc), datetime(2026, 3, 5, 21, 0, tzinfo=timezone.utc))
    ]
    query = json.loads(google.requests[-1].content)
    assert query["items"] == [{"id": "primary"}]
    assert query["timeMin"] == "2026-03-05T00:00:00-07:00"
    assert google.requests[-1].headers["Authorization"] == "Bearer tok_1"


def test_token_is_reused_until_expiry(calendar, google, tz):
    start, end = datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 6, tzinfo=tz)
    calendar.free_busy(start, end)
    calendar.free_busy(start, end)

    assert google.tokens_issued == 1


def test_token_expiry_triggers_refresh(google):
    now = [0.0]
    client = httpx.Client(transport=httpx.MockTransport(google))
    tokens = GoogleTokenProvider("id", "secret", "refresh", client=client, clock=lambda: now[0])

    assert tokens.get_token() == "tok_1"
    now[0] = 3600 - 61
    assert tokens.get_token() == "tok_1"
    now[0] = 3600 - 59
    assert tokens.get_token() == "tok_2"


def test_rejected_token_is_refreshed_once(calendar, google, tz):
    calendar.free_busy(datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 6, tzinfo=tz))
    google.reject_next_with_401 = True

    calendar.free_busy(datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 6, tzinfo=tz))

    assert google.tokens_issued == 2
    assert google.requests[-1].headers["Authorization"] == "Bearer tok_2"


def test_create_event(calendar, google, make_slot):
    slot = make_slot(5, 12)

    event_id = calendar.create_event(slot, title="Full Detail", description="Address: 12 Elm St")

    assert event_id == "evt_123"
    request = google.requests[-1]
    assert request.url.path == "/calendar/v3/calendars/primary/events"
    body = json.loads(request.content)
    assert body["summary"] == "Full Detail"
    assert body["start"] == {"dateTime": "2026-03-05T12:00:00-07:00", "timeZone": "America/Denver"}
    assert body["end"]["dateTime"] == "2026-03-05T15:00:00-07:00"


def test_create_event_error_raises_calendar_error(calendar, google, make_slot):
    google.event_status = 500

    with pytest.raises(CalendarError):
        calendar.create_event(make_slot(5, 12), title="Full Detail", description="")


def test_update_event_description(calendar, google):
    calendar.update_event_description("evt_123", "Address: 12 Elm St\nPhone: 555")

    request = google.requests[-1]
    assert request.method == "PATCH"
    assert request.url.path.endswith("/events/evt_123")
    assert json.loads(request.content) == {"description": "Address: 12 Elm St\nPhone: 555"}


def test_transport_error_becomes_calendar_error(tz):
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(unreachable))
    tokens = GoogleTokenProvider("id", "secret", "refresh", client=client)
    calendar = GoogleCalendar(tokens, calendar_id="primary", timezone="America/Denver", client=client)

    with pytest.raises(CalendarError):
        calendar.free_busy(datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 6, tzinfo=tz))


def test_missing_credentials_are_rejected():
    with pytest.raises(ValueError):
        GoogleTokenProvider("id", "", "refresh")
