"""
Deterministic keyword rules for inbound text.

Both classifiers walk an ordered table of (category, predicate) pairs and
return the first category whose predicate matches, so precedence is the
table order and each rule can be tested on its own.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable

from app.application.utils.intervals import MONTHS, WEEKDAYS


class MessageCategory(str, Enum):
    STOP = "stop"
    HUMAN = "human_request"
    GRATITUDE = "gratitude"
    CHANGE = "change_request"
    REGENERATE = "regenerate_slots"
    FAQ = "faq"
    NONE = "none"


class QuestionType(str, Enum):
    SERVICES = "services"
    PET_HAIR = "pet_hair"
    INCLUDED = "included"
    PRICE = "price"
    SERVICE_AREA = "service_area"
    DURATION = "duration"
    RESCHEDULE = "reschedule"
    AVAILABILITY = "availability"
    GENERIC = "generic"
    UNKNOWN = "unknown"


# Topics with a canned answer; availability/generic/unknown are routed elsewhere.
TOPICAL_QUESTION_TYPES = frozenset(
    {
        QuestionType.SERVICES,
        QuestionType.PET_HAIR,
        QuestionType.INCLUDED,
        QuestionType.PRICE,
        QuestionType.SERVICE_AREA,
        QuestionType.DURATION,
        QuestionType.RESCHEDULE,
    }
)

STOP_KEYWORDS = (
    "stop",
    "unsubscribe",
    "quit",
    "don't message",
    "dont message",
    "cancel",
    "nevermind",
    "never mind",
    "not interested",
)

HUMAN_KEYWORDS = ("human", "agent", "call me", "speak to someone", "talk to someone")

GRATITUDE_KEYWORDS = (
    "thanks",
    "thank you",
    "appreciate",
    "perfect",
    "awesome",
    "great",
    "sounds good",
    "ok thanks",
    "okay thanks",
    "cool thanks",
    "got it thanks",
)

CHANGE_KEYWORDS = (
    "change",
    "reschedule",
    "different day",
    "different time",
    "move it",
    "switch",
    "adjust",
    "modify",
    "update",
)

REGENERATE_KEYWORDS = (
    "different time",
    "another time",
    "other options",
    "something else",
    "neither",
    "not those",
    "different day",
    "show me more",
    "what else",
    "any other",
    "anything else",
    "give me other",
    "show other",
)

RESET_GREETINGS = frozenset({"hi", "hello", "hey", "start", "restart", "reset"})

# Agreement that does not say which option
AMBIGUOUS_AFFIRMATIVE_KEYWORDS = ("works", "good", "fine")

HESITATION_KEYWORDS = ("maybe", "not sure", "idk", "i don't know", "i dont know", "hmm", "let me think", "let me check")


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").lower()).strip()


def contains_phrase(text: str, phrases: tuple[str, ...]) -> bool:
    """Whole-word / whole-phrase containment."""
    normalized = normalize_text(text)
    return any(re.search(r"\b" + re.escape(phrase) + r"\b", normalized) for phrase in phrases)


def is_question(text: str) -> bool:
    return normalize_text(text).endswith("?")


def is_stop(text: str) -> bool:
    return contains_phrase(text, STOP_KEYWORDS)


def is_human_request(text: str) -> bool:
    return contains_phrase(text, HUMAN_KEYWORDS)


def is_gratitude(text: str) -> bool:
    return contains_phrase(text, GRATITUDE_KEYWORDS)


def is_change_request(text: str) -> bool:
    return contains_phrase(text, CHANGE_KEYWORDS)


def is_regenerate_request(text: str) -> bool:
    """Explicit ask for other options. Questions and replies of two words or fewer never count."""
    normalized = normalize_text(text)
    if not normalized or normalized.endswith("?"):
        return False
    if len(normalized.split(" ")) <= 2:
        return False
    return contains_phrase(normalized, REGENERATE_KEYWORDS)


def is_reset_greeting(text: str) -> bool:
    return normalize_text(text).rstrip("!.") in RESET_GREETINGS


def is_ambiguous_affirmative(text: str) -> bool:
    return contains_phrase(text, AMBIGUOUS_AFFIRMATIVE_KEYWORDS)


def is_hesitation(text: str) -> bool:
    return contains_phrase(text, HESITATION_KEYWORDS)


def _matches(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(p) for p in patterns]

    def predicate(normalized: str) -> bool:
        return any(p.search(normalized) for p in compiled)

    return predicate


def _asks_about_service(normalized: str) -> bool:
    return "service" in normalized and "?" in normalized


def _asks_about_time_taken(normalized: str) -> bool:
    return bool(re.search(r"\btakes?\b", normalized)) and "time" in normalized


_AVAILABILITY_TERMS = ("day", "time", "other", "available", "when") + WEEKDAYS + MONTHS


def _asks_about_availability(normalized: str) -> bool:
    if not normalized.endswith("?"):
        return False
    if any(term in normalized for term in _AVAILABILITY_TERMS):
        return True
    return bool(re.search(r"\d{1,2}", normalized))


_services_keywords = _matches(
    r"\bwhat services?\b",
    r"\btell me about\b",
    r"\bwhat do you do\b",
    r"\bwhat can you do\b",
    r"\bservices do you\b",
    r"\bhelp\b",
    r"\binfo(rmation)?\b",
)
_duration_keywords = _matches(r"\blong\b", r"\bduration\b", r"\bhow many hours\b")


QUESTION_RULES: tuple[tuple[QuestionType, Callable[[str], bool]], ...] = (
    (QuestionType.SERVICES, lambda t: _services_keywords(t) or _asks_about_service(t)),
    (QuestionType.PET_HAIR, _matches(r"\b(dogs?|pets?|hair|fur)\b")),
    (QuestionType.INCLUDED, _matches(r"\binclud", r"\bwhat do you\b", r"\bwhat does\b", r"\bwhat comes with\b")),
    (QuestionType.PRICE, _matches(r"\bprice", r"\bcost", r"\bhow much\b", r"\bcharge", r"\bfees?\b")),
    (QuestionType.SERVICE_AREA, _matches(r"\bzip", r"\blocation", r"\bwhere\b", r"\barea\b", r"\bcome to\b")),
    (QuestionType.DURATION, lambda t: _duration_keywords(t) or _asks_about_time_taken(t)),
    (QuestionType.RESCHEDULE, _matches(r"\breschedul", r"\bcancel", r"\bchange")),
    (QuestionType.AVAILABILITY, _asks_about_availability),
    (QuestionType.GENERIC, lambda t: t.endswith("?")),
)


def detect_question_type(text: str) -> QuestionType:
    normalized = normalize_text(text)
    for question_type, predicate in QUESTION_RULES:
        if predicate(normalized):
            return question_type
    return QuestionType.UNKNOWN


MESSAGE_RULES: tuple[tuple[MessageCategory, Callable[[str], bool]], ...] = (
    (MessageCategory.STOP, is_stop),
    (MessageCategory.HUMAN, is_human_request),
    (MessageCategory.GRATITUDE, is_gratitude),
    (MessageCategory.CHANGE, is_change_request),
    (MessageCategory.REGENERATE, is_regenerate_request),
    (MessageCategory.FAQ, lambda t: detect_question_type(t) in TOPICAL_QUESTION_TYPES),
)


def classify_message(text: str) -> MessageCategory:
    for category, predicate in MESSAGE_RULES:
        if predicate(text):
            return category
    return MessageCategory.NONE
