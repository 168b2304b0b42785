from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import httpx

from app.application.exceptions import CalendarError
from app.application.ports.calendar import CalendarPort
from app.domain.entities.slot import BusyBlock, Slot, parse_instant

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com/calendar/v3"

# Refresh this many seconds before Google says the token expires
EXPIRY_MARGIN_SECONDS = 60


class GoogleTokenProvider:
    """
    Owns the OAuth access token for the calendar API.

    Tokens come from the refresh-token grant and are reused until shortly
    before their reported expiry. `invalidate` drops the cached token so the
    next `get_token` goes back to Google.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not (client_id and client_secret and refresh_token):
            raise ValueError("GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN are required")
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._client = client or httpx.Client(timeout=10.0)
        self._clock = clock
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at = 0.0
        self._logger = logging.getLogger(__name__)

    def get_token(self) -> str:
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            return self._refresh()

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _refresh(self) -> str:
        resp = self._client.post(
            TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if resp.status_code >= 400:
            raise CalendarError(f"Failed to refresh token: {resp.status_code} {resp.text}")

        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise CalendarError("Token response has no access_token")
        expires_in = int(data.get("expires_in") or 3600)
        self._token = str(token)
        self._expires_at = self._clock() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0)
        self._logger.info("Google access token refreshed", extra={"reason": f"expires_in={expires_in}"})
        return self._token


class GoogleCalendar(CalendarPort):
    def __init__(
        self,
        token_provider: GoogleTokenProvider,
        calendar_id: str,
        timezone: str,
        client: httpx.Client | None = None,
        base_url: str = API_BASE,
    ) -> None:
        if not calendar_id:
            raise ValueError("GOOGLE_CALENDAR_ID is required for Google Calendar")
        self._tokens = token_provider
        self._calendar_id = calendar_id
        self._timezone = timezone
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def free_busy(self, start: datetime, end: datetime) -> list[BusyBlock]:
        data = self._request(
            "POST",
            f"{self._base_url}/freeBusy",
            {
                "timeMin": start.isoformat(),
                "timeMax": end.isoformat(),
                "items": [{"id": self._calendar_id}],
            },
            what="freeBusy",
        )
        calendar = (data.get("calendars") or {}).get(self._calendar_id) or {}
        return [
            BusyBlock(start=parse_instant(block["start"]), end=parse_instant(block["end"]))
            for block in calendar.get("busy") or []
        ]

    def create_event(self, slot: Slot, title: str, description: str) -> str:
        data = self._request(
            "POST",
            self._events_url(),
            {
                "summary": title,
                "description": description,
                "start": {"dateTime": slot.start.isoformat(), "timeZone": self._timezone},
                "end": {"dateTime": slot.end.isoformat(), "timeZone": self._timezone},
            },
            what="create event",
        )
        event_id = data.get("id")
        if not event_id:
            raise CalendarError("No event ID returned from Google Calendar API")
        self._logger.info("Calendar event created", extra={"event_id": event_id, "slot": slot.label})
        return str(event_id)

    def update_event_description(self, event_id: str, description: str) -> None:
        self._request(
            "PATCH",
            f"{self._events_url()}/{quote(event_id, safe='')}",
            {"description": description},
            what="update event",
        )

    def _events_url(self) -> str:
        return f"{self._base_url}/calendars/{quote(self._calendar_id, safe='')}/events"

    def _request(self, method: str, url: str, payload: dict[str, Any], what: str) -> dict[str, Any]:
        try:
            resp = self._send(method, url, payload)
            if resp.status_code == 401:
                self._logger.info("Calendar token rejected, refreshing", extra={"reason": what})
                self._tokens.invalidate()
                resp = self._send(method, url, payload)
        except httpx.HTTPError as e:
            raise CalendarError(f"Google Calendar {what} failed: {e}") from e

        if resp.status_code >= 400:
            self._logger.error(
                "Google Calendar request failed",
                extra={"status": resp.status_code, "reason": what, "error_message": resp.text[:500]},
            )
            raise CalendarError(f"Google Calendar {what} error: {resp.status_code} {resp.text}")
        return resp.json() if resp.content else {}

    def _send(self, method: str, url: str, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._tokens.get_token()}"}
        return self._client.request(method, url, json=payload, headers=headers)
