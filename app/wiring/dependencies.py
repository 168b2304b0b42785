from datetime import timedelta
from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.application.ports.calendar import CalendarPort
from app.application.ports.conversation_store import ConversationStorePort
from app.application.ports.lead_store import LeadStorePort
from app.application.ports.llm import TopicalAnswererPort
from app.application.ports.message_platform import MessagePlatformPort
from app.application.ports.notifier import NotificationPort
from app.application.use_cases.answer_question import AnswerQuestionUseCase
from app.application.use_cases.booking import BookingStateMachine
from app.application.use_cases.claim_protocol import ClaimProtocol
from app.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from app.application.use_cases.reply_composer import ReplyComposer
from app.application.use_cases.send_reply import SendReplyUseCase
from app.application.use_cases.slot_generator import SlotGenerator, parse_windows
from app.domain.entities.business_profile import BusinessProfile
from app.infrastructure.calendar.google_calendar import GoogleCalendar, GoogleTokenProvider
from app.infrastructure.calendar.mock_calendar import MockCalendar
from app.infrastructure.llm.openai_llm import OpenAITopicalAnswerer
from app.infrastructure.messenger.messenger_client import MessengerClient
from app.infrastructure.messenger.messenger_platform import MessengerPlatform
from app.infrastructure.messenger.mock_platform import MockMessengerPlatform
from app.infrastructure.notify.logging_notifier import LoggingNotifier
from app.infrastructure.notify.resend_notifier import ResendNotifier
from app.infrastructure.store.memory_store import MemoryConversationStore, MemoryLeadStore
from app.infrastructure.store.supabase_store import PostgrestClient, SupabaseConversationStore, SupabaseLeadStore


logger = logging.getLogger(__name__)


def _is_dev() -> bool:
    return settings.ENV.lower() in {"dev", "local"}


def _use_supabase() -> bool:
    return bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY) and not _is_dev()


@lru_cache
def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.GOOGLE_TIMEZONE)


@lru_cache
def get_postgrest_client() -> PostgrestClient:
    return PostgrestClient(url=settings.SUPABASE_URL or "", service_key=settings.SUPABASE_SERVICE_ROLE_KEY or "")


@lru_cache
def get_lead_store() -> LeadStorePort:
    if _use_supabase():
        return SupabaseLeadStore(get_postgrest_client())
    logger.info("Using in-memory lead store (ENV=%s)", settings.ENV)
    return MemoryLeadStore()


@lru_cache
def get_conversation_store() -> ConversationStorePort:
    if _use_supabase():
        return SupabaseConversationStore(get_postgrest_client())
    return MemoryConversationStore()


@lru_cache
def get_calendar() -> CalendarPort:
    has_credentials = all(
        (
            settings.GOOGLE_CALENDAR_ID,
            settings.GOOGLE_CLIENT_ID,
            settings.GOOGLE_CLIENT_SECRET,
            settings.GOOGLE_REFRESH_TOKEN,
        )
    )
    if not has_credentials or _is_dev():
        logger.info("Using MockCalendar (ENV=%s, credentials present=%s)", settings.ENV, has_credentials)
        return MockCalendar()
    tokens = GoogleTokenProvider(
        client_id=settings.GOOGLE_CLIENT_ID or "",
        client_secret=settings.GOOGLE_CLIENT_SECRET or "",
        refresh_token=settings.GOOGLE_REFRESH_TOKEN or "",
    )
    return GoogleCalendar(
        token_provider=tokens,
        calendar_id=settings.GOOGLE_CALENDAR_ID or "",
        timezone=settings.GOOGLE_TIMEZONE,
    )


@lru_cache
def get_topical_answerer() -> TopicalAnswererPort | None:
    if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.strip():
        return OpenAITopicalAnswerer()
    return None


def get_notifier() -> NotificationPort:
    recipients = [r.strip() for r in (settings.NOTIFY_TO or "").split(",") if r.strip()]
    if settings.RESEND_API_KEY and recipients:
        return ResendNotifier(api_key=settings.RESEND_API_KEY, sender=settings.NOTIFY_FROM, recipients=recipients)
    return LoggingNotifier()


def get_business_profile() -> BusinessProfile:
    return BusinessProfile(
        service_name=settings.SERVICE_NAME,
        service_price=settings.SERVICE_PRICE,
        service_area=settings.SERVICE_AREA,
        service_duration=settings.SERVICE_DURATION,
        service_included=settings.SERVICE_INCLUDED,
    )


def get_slot_generator() -> SlotGenerator:
    return SlotGenerator(
        calendar=get_calendar(),
        timezone=get_timezone(),
        windows=parse_windows(settings.SLOT_WINDOWS),
        days_primary=settings.SLOT_DAYS_PRIMARY,
        days_fallback=settings.SLOT_DAYS_FALLBACK,
        start_offset_days=settings.SLOT_START_OFFSET_DAYS,
    )


def get_messenger_platform() -> MessagePlatformPort:
    logger.info(
        "META_PAGE_ACCESS_TOKEN present=%s len=%s",
        bool(settings.META_PAGE_ACCESS_TOKEN),
        len(settings.META_PAGE_ACCESS_TOKEN or ""),
    )

    if not settings.META_PAGE_ACCESS_TOKEN:
        if _is_dev():
            logger.info("Using MockMessengerPlatform (token missing, ENV=dev/local)")
            return MockMessengerPlatform()
        raise ValueError("META_PAGE_ACCESS_TOKEN is required to send Messenger replies.")

    client = MessengerClient(
        access_token=settings.META_PAGE_ACCESS_TOKEN,
        send_endpoint=settings.META_SEND_ENDPOINT,
    )
    return MessengerPlatform(client=client)


def build_booking_state_machine(lead_store: LeadStorePort) -> BookingStateMachine:
    slot_generator = get_slot_generator()
    composer = ReplyComposer(get_business_profile(), get_timezone())
    claims = ClaimProtocol(
        lead_store=lead_store,
        calendar=get_calendar(),
        slot_generator=slot_generator,
        notifier=get_notifier(),
        service_name=settings.SERVICE_NAME,
        claim_ttl=timedelta(minutes=settings.PENDING_CLAIM_TTL_MINUTES),
    )
    return BookingStateMachine(
        slot_generator=slot_generator,
        claims=claims,
        lead_store=lead_store,
        composer=composer,
        answer_question=AnswerQuestionUseCase(composer, get_topical_answerer()),
    )


@lru_cache
def get_handle_incoming_message_use_case() -> HandleIncomingMessageUseCase:
    lead_store = get_lead_store()
    return HandleIncomingMessageUseCase(
        lead_store=lead_store,
        conversation_store=get_conversation_store(),
        booking=build_booking_state_machine(lead_store),
        send_reply=SendReplyUseCase(platform=get_messenger_platform()),
    )
