from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from app.application.utils.date_parser import find_weekday
from app.application.utils.intervals import label_day, label_time
from app.application.utils.message_rules import contains_phrase, normalize_text
from app.domain.entities.slot import Slot

CONFIRMATION_WORDS = (
    "yes",
    "yeah",
    "yep",
    "sure",
    "ok",
    "okay",
    "sounds good",
    "that works",
    "perfect",
    "great",
)

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_HOUR_RE = re.compile(r"^(\d{1,2})$")
_HOUR_PERIOD_RE = re.compile(r"^(\d{1,2})(am|pm)$")
_LABEL_CLOCK_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(am|pm)", re.IGNORECASE)
_TIME_TOKEN_RE = re.compile(r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)?\b|\bnoon\b|\bmidnight\b")


@dataclass(frozen=True)
class SlotMatch:
    matched: bool
    slot: Slot | None = None
    requires_choice: bool = False


NO_MATCH = SlotMatch(matched=False)


def match_slot(text: str, slots: Sequence[Slot]) -> SlotMatch:
    """
    Resolve a reply against the offered slots, from precise to fuzzy:
    confirmation word, index, weekday, exact label, bare time, day plus time.

    Callers run the date extractor first; only text that names no date
    should reach this function.
    """
    if not slots:
        return NO_MATCH

    normalized = normalize_text(text)
    if not normalized:
        return NO_MATCH

    match = _match_confirmation(normalized, slots)
    if match is not None:
        return match

    bare = normalized.strip(" .!#")
    if bare == "1":
        return SlotMatch(matched=True, slot=slots[0])
    if bare == "2" and len(slots) >= 2:
        return SlotMatch(matched=True, slot=slots[1])

    weekday = find_weekday(normalized)
    if weekday is not None:
        same_day = [slot for slot in slots if weekday in slot.label.lower()]
        if same_day:
            timed = _match_day_and_time(normalized, same_day)
            token = _time_token(normalized)
            if timed is None and token:
                timed = _match_time(token, same_day)
            return SlotMatch(matched=True, slot=timed or same_day[0])

    for slot in slots:
        if normalized == slot.label.lower():
            return SlotMatch(matched=True, slot=slot)

    slot = _match_time(bare.replace(" ", ""), slots)
    if slot is not None:
        return SlotMatch(matched=True, slot=slot)

    slot = _match_day_and_time(normalized, slots)
    if slot is not None:
        return SlotMatch(matched=True, slot=slot)

    return NO_MATCH


def _match_confirmation(normalized: str, slots: Sequence[Slot]) -> SlotMatch | None:
    if not contains_phrase(normalized, CONFIRMATION_WORDS):
        return None
    # selection tokens outrank confirmation words
    if re.search(r"\d", normalized) or find_weekday(normalized) or _TIME_TOKEN_RE.search(normalized):
        return None
    if len(slots) == 1:
        return SlotMatch(matched=True, slot=slots[0])
    if slots[0].label.lower() == slots[1].label.lower():
        return SlotMatch(matched=True, slot=slots[0])
    return SlotMatch(matched=False, requires_choice=True)


def _slot_clock(slot: Slot) -> tuple[int, str, str] | None:
    match = _LABEL_CLOCK_RE.search(slot.label)
    if not match:
        return None
    return int(match.group(1)), match.group(2), match.group(3).lower()


def _match_time(compact: str, slots: Sequence[Slot]) -> Slot | None:
    clock = _CLOCK_RE.match(compact)
    if clock:
        hour, minutes = int(clock.group(1)), clock.group(2)
        if 1 <= hour <= 12:
            for slot in slots:
                parts = _slot_clock(slot)
                if parts and parts[0] == hour and parts[1] == minutes:
                    return slot

    bare_hour = _HOUR_RE.match(compact)
    if bare_hour:
        hour = int(bare_hour.group(1))
        if 1 <= hour <= 12:
            for slot in slots:
                parts = _slot_clock(slot)
                if parts and parts[0] == hour and parts[1] == "00":
                    return slot

    wanted = compact
    hour_period = _HOUR_PERIOD_RE.match(compact)
    if hour_period:
        wanted = f"{hour_period.group(1)}:00{hour_period.group(2)}"
    elif compact == "noon":
        wanted = "12:00pm"
    elif compact == "midnight":
        wanted = "12:00am"

    for slot in slots:
        slot_time = label_time(slot.label).replace(" ", "").lower()
        if slot_time and wanted == slot_time:
            return slot
    return None


def _time_token(normalized: str) -> str | None:
    match = _TIME_TOKEN_RE.search(normalized)
    return match.group(0).replace(" ", "") if match else None


def _match_day_and_time(normalized: str, slots: Sequence[Slot]) -> Slot | None:
    compact = normalized.replace(" ", "")
    for slot in slots:
        day = label_day(slot.label)
        slot_time = label_time(slot.label).replace(" ", "").lower()
        if day and slot_time and day in normalized and slot_time in compact:
            return slot
    return None
