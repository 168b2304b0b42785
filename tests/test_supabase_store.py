"""
Supabase (PostgREST) stores against a mocked HTTP transport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from app.application.exceptions import LeadNotFoundError, StoreError
from app.domain.entities.conversation_state import BookingContext, ConversationState, Step
from app.domain.entities.lead import LeadStatus, PendingClaim
from app.infrastructure.store.supabase_store import PostgrestClient, SupabaseConversationStore, SupabaseLeadStore

LEAD_ROW = {"id": "lead_1", "psid": "psid_1", "status": "active", "bot_enabled": True}


class FakePostgrest:
    """Answers each request with the next queued (status, body) response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[tuple[int, object]] = []

    def queue(self, status: int, body: object = None) -> None:
        self.responses.append((status, body))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0) if self.responses else (200, [])
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def params(self, index: int = -1) -> list[tuple[str, str]]:
        return list(self.requests[index].url.params.multi_items())

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def db():
    return FakePostgrest()


@pytest.fixture
def client(db):
    return PostgrestClient(
        "https://proj.supabase.co/",
        "service_key",
        client=httpx.Client(transport=httpx.MockTransport(db)),
    )


@pytest.fixture
def leads(client):
    return SupabaseLeadStore(client)


def test_requests_carry_service_role_headers(leads, db):
    db.queue(200, [LEAD_ROW])

    leads.get_by_id("lead_1")

    request = db.requests[-1]
    assert str(request.url).startswith("https://proj.supabase.co/rest/v1/bot_leads?")
    assert request.headers["apikey"] == "service_key"
    assert request.headers["Authorization"] == "Bearer service_key"
    assert db.params() == [("id", "eq.lead_1"), ("select", "*")]


def test_upsert_merges_on_psid(leads, db):
    db.queue(201, [LEAD_ROW])

    lead = leads.upsert_by_external_id("psid_1")

    assert lead.id == "lead_1"
    assert db.params() == [("on_conflict", "psid"), ("select", "*")]
    assert db.requests[-1].headers["Prefer"] == "resolution=merge-duplicates,return=representation"
    [row] = db.body()
    assert row["psid"] == "psid_1"
    assert "status" not in row


def test_missing_lead_raises(leads, db):
    db.queue(200, [])
    with pytest.raises(LeadNotFoundError):
        leads.get_by_id("nope")


def test_claim_is_a_filtered_patch(leads, db, make_slot):
    slot = make_slot(5, 12)
    db.queue(200, [dict(LEAD_ROW, pending_slot_label=slot.label)])

    lead = leads.claim_pending_slot("lead_1", slot, slot.start)

    assert lead.pending_slot_label == "Thursday at 12:00 PM"
    request = db.requests[-1]
    assert request.method == "PATCH"
    assert db.params() == [
        ("id", "eq.lead_1"),
        ("booked_event_id", "is.null"),
        ("pending_claimed_at", "is.null"),
        ("pending_slot_label", "is.null"),
    ]
    body = db.body()
    assert body["pending_slot_start"] == "2026-03-05T12:00:00-07:00"
    assert body["status"] == "active"


def test_lost_compare_and_swap_returns_none(leads, db, make_slot):
    db.queue(200, [])
    assert leads.claim_pending_slot("lead_1", make_slot(5, 12), make_slot(5, 12).start) is None


def test_release_is_conditional_on_no_booking(leads, db):
    db.queue(200, [])

    assert leads.release_pending_claim("lead_1") is False
    assert ("booked_event_id", "is.null") in db.params()
    assert db.body()["pending_slot_label"] is None


def test_finalize_matches_the_claimed_label(leads, db, make_slot):
    slot = make_slot(5, 12)
    booked = dict(LEAD_ROW, status="booked", booked_event_id="evt_1", booked_slot_label=slot.label)
    db.queue(200, [booked])
    claim = PendingClaim(label=slot.label, start=slot.start, end=slot.end, claimed_at=slot.start)

    lead = leads.finalize_booking("lead_1", claim, "evt_1", "12 Elm St", "555")

    assert lead.status == LeadStatus.BOOKED
    assert ("pending_slot_label", "eq.Thursday at 12:00 PM") in db.params()
    assert db.body()["booked_event_id"] == "evt_1"


def test_dedupe_outcomes(leads, db):
    db.queue(201, [{"message_id": "m_1"}])
    db.queue(201, [])
    db.queue(409, {"code": "23505"})

    assert leads.try_insert_dedupe("m_1", "lead_1") is True
    assert leads.try_insert_dedupe("m_1", "lead_1") is False
    assert leads.try_insert_dedupe("m_1", "lead_1") is False
    assert db.requests[0].headers["Prefer"] == "resolution=ignore-duplicates,return=representation"


def test_dedupe_server_error_raises(leads, db):
    db.queue(500, {"message": "boom"})
    with pytest.raises(StoreError):
        leads.try_insert_dedupe("m_1", "lead_1")


def test_track_event_never_raises(leads, db):
    db.queue(500, {"message": "boom"})
    leads.track_event("lead_1", "slots_offered", {"slots": []})


def test_transport_error_becomes_store_error():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = PostgrestClient("https://proj.supabase.co", "key", client=httpx.Client(transport=httpx.MockTransport(unreachable)))
    with pytest.raises(StoreError):
        SupabaseLeadStore(client).update("lead_1", {"status": "dead"})


def test_active_addons(leads, db):
    db.queue(200, [{"addon_key": "dog_hair", "name": "Dog Hair Removal", "price_cents": 5000, "is_active": True}])

    [addon] = leads.get_active_addons()

    assert addon.addon_key == "dog_hair"
    assert addon.price_display == "$50"
    assert ("is_active", "eq.true") in db.params()


def test_conversation_state_round_trip(client, db, make_slot):
    store = SupabaseConversationStore(client)
    state = ConversationState(step=Step.CLOSING, context=BookingContext(slots=(make_slot(5, 12),), attempt_count=1))

    store.upsert_state("lead_1", state)
    sent = db.body()
    assert db.params() == [("on_conflict", "lead_id")]
    assert sent["step"] == "closing"

    db.queue(200, [sent])
    assert store.get_state("lead_1") == state

    db.queue(200, [])
    assert store.get_state("lead_2") is None


def test_missing_configuration_is_rejected():
    with pytest.raises(ValueError):
        PostgrestClient("", "key")
