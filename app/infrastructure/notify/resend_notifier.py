from __future__ import annotations

import logging
from html import escape

import httpx

from app.application.ports.notifier import BookingNotification, NotificationPort

RESEND_URL = "https://api.resend.com/emails"


class ResendNotifier(NotificationPort):
    """Booking email to the business owner through Resend."""

    def __init__(self, api_key: str, sender: str, recipients: list[str], client: httpx.Client | None = None) -> None:
        self._api_key = api_key
        self._sender = sender
        self._recipients = recipients
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def notify_booking(self, notification: BookingNotification) -> None:
        payload = {
            "from": self._sender,
            "to": self._recipients,
            "subject": f"New Booking: {notification.slot_label}",
            "html": _html_body(notification),
            "text": _text_body(notification),
        }
        try:
            resp = self._client.post(
                RESEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self._logger.error(
                "Booking notification failed",
                extra={"event_id": notification.event_id, "slot": notification.slot_label, "reason": str(e)},
            )
            return
        self._logger.info("Booking notification sent", extra={"event_id": notification.event_id})


def _text_body(n: BookingNotification) -> str:
    return (
        "New Booking from Messenger Bot\n"
        "\n"
        "Appointment Details:\n"
        f"- Time: {n.slot_label}\n"
        f"- Address: {n.address}\n"
        f"- Phone: {n.phone}\n"
        "\n"
        "Technical Details:\n"
        f"- Google Calendar Event ID: {n.event_id}\n"
        f"- Customer PSID: {n.psid}"
    )


def _html_body(n: BookingNotification) -> str:
    return (
        "<h2>New Booking from Messenger Bot</h2>"
        "<h3>Appointment Details:</h3>"
        "<ul>"
        f"<li><strong>Time:</strong> {escape(n.slot_label)}</li>"
        f"<li><strong>Address:</strong> {escape(n.address)}</li>"
        f"<li><strong>Phone:</strong> {escape(n.phone)}</li>"
        "</ul>"
        "<h3>Technical Details:</h3>"
        "<ul>"
        f"<li><strong>Google Calendar Event ID:</strong> {escape(n.event_id)}</li>"
        f"<li><strong>Customer PSID:</strong> {escape(n.psid)}</li>"
        "</ul>"
    )
