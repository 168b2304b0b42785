"""
Tests for the per-message turn boundary: dedupe, audit logging and fallback.
"""

from __future__ import annotations

import logging

from app.application.exceptions import CalendarError, StoreError
from app.application.use_cases.reply_composer import FALLBACK_REPLY
from app.application.use_cases.send_reply import SendReplyUseCase
from app.infrastructure.calendar.mock_calendar import MockCalendar
from app.infrastructure.messenger.mock_platform import MockMessengerPlatform


class UnavailableCalendar(MockCalendar):
    def free_busy(self, start, end):
        raise CalendarError("freeBusy failed: 503")


def test_redelivered_message_is_processed_once(build_bot):
    bot = build_bot()

    first = bot.send("hey", mid="m_1")
    second = bot.send("hey", mid="m_1")

    assert first is not None
    assert second is None
    assert len(bot.platform.sent) == 1
    assert [m["direction"] for m in bot.leads.messages] == ["inbound", "outbound"]


def test_turn_is_audited(build_bot):
    bot = build_bot()

    result = bot.send("hey", mid="m_1")

    lead = bot.lead()
    inbound, outbound = bot.leads.messages
    assert inbound["text"] == "hey"
    assert outbound["text"] == result.reply
    assert outbound["raw"]["dedupe_key"] == "m_1"
    assert outbound["raw"]["step"] == "closing"
    assert outbound["raw"]["slots"] == ["Thursday at 12:00 PM", "Thursday at 3:00 PM"]
    assert bot.leads.event_types(lead.id) == ["conversation_started", "slots_offered"]
    assert bot.leads.intents[-1]["detected_intent"] == "initial_offer"
    assert bot.conversations.get_state(lead.id) == result.state
    assert bot.platform.sent == [("psid_1", result.reply)]


def test_conversation_started_is_tracked_once(build_bot):
    bot = build_bot()
    bot.send("hey")
    bot.send("2")

    assert bot.leads.event_types(bot.lead().id).count("conversation_started") == 1


def test_disabled_bot_stays_silent(build_bot):
    bot = build_bot()
    lead = bot.lead()
    bot.leads.set_bot_enabled(lead.id, False)

    assert bot.send("hello?") is None
    assert bot.platform.sent == []
    assert [m["direction"] for m in bot.leads.messages] == ["inbound"]


def test_failure_inside_turn_sends_fallback(build_bot):
    bot = build_bot(calendar=UnavailableCalendar())

    result = bot.send("hey")

    assert result.reply == FALLBACK_REPLY
    assert bot.platform.sent == [("psid_1", FALLBACK_REPLY)]
    outbound = bot.leads.messages[-1]
    assert outbound["text"] == FALLBACK_REPLY
    assert "503" in outbound["raw"]["error"]
    assert bot.conversations.get_state(bot.lead().id) is None


def test_store_failure_before_dedupe_sends_nothing(build_bot, monkeypatch):
    bot = build_bot()

    def unavailable(psid):
        raise StoreError("connection refused")

    monkeypatch.setattr(bot.leads, "upsert_by_external_id", unavailable)

    assert bot.send("hey") is None
    assert bot.platform.sent == []


def test_addon_lookup_failure_is_not_fatal(build_bot, monkeypatch):
    bot = build_bot()
    bot.send("hey")

    def unavailable():
        raise StoreError("add_ons unavailable")

    monkeypatch.setattr(bot.leads, "get_active_addons", unavailable)
    result = bot.send("do you do dog hair?")

    assert result.reply.startswith("Yep, we handle dog hair removal.")


def test_send_disabled_logs_instead(caplog):
    platform = MockMessengerPlatform()
    send = SendReplyUseCase(platform, enabled=False)

    with caplog.at_level(logging.INFO):
        assert send.execute(recipient_id="psid_1", text="Hello") is False

    assert platform.sent == []
    assert "WOULD_SEND_REPLY" in caplog.text
