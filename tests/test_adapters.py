"""
Outbound HTTP adapters (Messenger Send API, Resend) and webhook verification.
"""

from __future__ import annotations

import hashlib
import hmac
import json

import httpx
import pytest

from app.application.ports.notifier import BookingNotification
from app.infrastructure.messenger.messenger_client import MessengerClient
from app.infrastructure.messenger.webhook_verify import verify_post_signature, verify_subscription
from app.infrastructure.notify.resend_notifier import RESEND_URL, ResendNotifier

SEND_ENDPOINT = "https://graph.facebook.com/v19.0/me/messages"


def _recording_client(status: int = 200, body: dict | None = None):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, json=body or {})

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


def test_messenger_send_payload():
    client, requests = _recording_client(body={"recipient_id": "psid_1", "message_id": "m_out"})
    MessengerClient("page_token", SEND_ENDPOINT, client=client).send_text("psid_1", "Hi there")

    [request] = requests
    assert request.url.params["access_token"] == "page_token"
    assert json.loads(request.content) == {
        "messaging_type": "RESPONSE",
        "recipient": {"id": "psid_1"},
        "message": {"text": "Hi there"},
    }


def test_messenger_send_error_raises():
    client, _ = _recording_client(400, {"error": {"code": 10, "message": "outside allowed window"}})
    with pytest.raises(httpx.HTTPStatusError):
        MessengerClient("page_token", SEND_ENDPOINT, client=client).send_text("psid_1", "Hi")


def _notification() -> BookingNotification:
    return BookingNotification(
        slot_label="Thursday at 3:00 PM",
        address="12 Elm St <Apt 4>",
        phone="801-555-0100",
        psid="psid_1",
        event_id="evt_1",
    )


def test_resend_email():
    client, requests = _recording_client(body={"id": "email_1"})
    ResendNotifier("re_key", "Bookings <b@example.com>", ["owner@example.com"], client=client).notify_booking(
        _notification()
    )

    [request] = requests
    assert str(request.url) == RESEND_URL
    assert request.headers["Authorization"] == "Bearer re_key"
    body = json.loads(request.content)
    assert body["subject"] == "New Booking: Thursday at 3:00 PM"
    assert body["to"] == ["owner@example.com"]
    assert "12 Elm St &lt;Apt 4&gt;" in body["html"]
    assert "- Phone: 801-555-0100" in body["text"]


def test_resend_failure_is_swallowed():
    client, _ = _recording_client(500, {"message": "internal"})
    ResendNotifier("re_key", "b@example.com", ["owner@example.com"], client=client).notify_booking(_notification())


def test_verify_subscription():
    assert verify_subscription("subscribe", "tok", "challenge", "tok") == "challenge"
    assert verify_subscription("subscribe", "bad", "challenge", "tok") is None
    assert verify_subscription("unsubscribe", "tok", "challenge", "tok") is None
    assert verify_subscription("subscribe", "tok", "challenge", "") is None


def test_verify_post_signature():
    body = b'{"object":"page"}'
    good = "sha256=" + hmac.new(b"secret", body, hashlib.sha256).hexdigest()

    assert verify_post_signature(body, good, "secret", "prod")
    assert not verify_post_signature(body, good, "other", "prod")
    assert not verify_post_signature(body, "sha1=abc", "secret", "prod")
    assert not verify_post_signature(body, None, "secret", "prod")
    assert verify_post_signature(body, None, "secret", "dev")
    assert not verify_post_signature(body, good, None, "prod")
