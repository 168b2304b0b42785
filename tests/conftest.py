from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.application.use_cases.answer_question import AnswerQuestionUseCase
from app.application.use_cases.booking import BookingStateMachine
from app.application.use_cases.claim_protocol import ClaimProtocol
from app.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from app.application.use_cases.reply_composer import ReplyComposer
from app.application.use_cases.send_reply import SendReplyUseCase
from app.application.use_cases.slot_generator import SlotGenerator
from app.application.utils.intervals import format_slot_label
from app.domain.entities.business_profile import BusinessProfile, ServiceAddon
from app.domain.entities.message import Message
from app.domain.entities.slot import Slot
from app.infrastructure.calendar.mock_calendar import MockCalendar
from app.infrastructure.messenger.mock_platform import MockMessengerPlatform
from app.infrastructure.notify.logging_notifier import LoggingNotifier
from app.infrastructure.store.memory_store import MemoryConversationStore, MemoryLeadStore

DENVER = ZoneInfo("America/Denver")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class Bot:
    use_case: HandleIncomingMessageUseCase
    booking: BookingStateMachine
    claims: ClaimProtocol
    slots: SlotGenerator
    leads: MemoryLeadStore
    conversations: MemoryConversationStore
    calendar: MockCalendar
    platform: MockMessengerPlatform
    notifier: LoggingNotifier
    clock: FakeClock
    counter: int = 0

    def send(self, text: str | None, psid: str = "psid_1", mid: str | None = None):
        self.counter += 1
        message = Message(
            id=mid or f"mid_{self.counter}",
            sender_id=psid,
            text=text,
            timestamp=1772467200000 + self.counter,
            platform="messenger",
            has_attachments=text is None,
        )
        return self.use_case.handle(message)

    def lead(self, psid: str = "psid_1"):
        return self.leads.upsert_by_external_id(psid)


@pytest.fixture
def tz() -> ZoneInfo:
    return DENVER


@pytest.fixture
def clock() -> FakeClock:
    # Monday
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=DENVER))


@pytest.fixture
def make_slot():
    def _make(day: int, hour: int, month: int = 3, hours: int = 3) -> Slot:
        start = datetime(2026, month, day, hour, 0, tzinfo=DENVER)
        return Slot(start=start, end=start + timedelta(hours=hours), label=format_slot_label(start, DENVER))

    return _make


@pytest.fixture
def profile() -> BusinessProfile:
    return BusinessProfile(
        service_name="Full Detail",
        service_price="$200",
        service_area="Northern Utah",
        service_duration="2-3 hours",
        service_included="Interior and exterior, top to bottom.",
    )


@pytest.fixture
def build_bot(clock, profile):
    def _build(calendar: MockCalendar | None = None, answerer=None, addons=None, notifier=None) -> Bot:
        calendar = calendar or MockCalendar()
        leads = MemoryLeadStore(addons=addons or [ServiceAddon("dog_hair", "Dog Hair Removal", 5000)])
        conversations = MemoryConversationStore()
        platform = MockMessengerPlatform()
        notifier = notifier or LoggingNotifier()
        slots = SlotGenerator(calendar, DENVER, clock=clock)
        composer = ReplyComposer(profile, DENVER)
        claims = ClaimProtocol(leads, calendar, slots, notifier, service_name=profile.service_name, clock=clock)
        booking = BookingStateMachine(slots, claims, leads, composer, AnswerQuestionUseCase(composer, answerer))
        use_case = HandleIncomingMessageUseCase(leads, conversations, booking, SendReplyUseCase(platform, enabled=True))
        return Bot(use_case, booking, claims, slots, leads, conversations, calendar, platform, notifier, clock)

    return _build
