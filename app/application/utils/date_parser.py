from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from app.application.utils.intervals import MONTHS, WEEKDAYS

# A requested time must never be read as a day of month ("at 3" is not the 3rd).
TIME_INDICATORS = (
    re.compile(r"\b(am|pm)\b"),
    re.compile(r"\d\s*(am|pm)\b"),
    re.compile(r"\bnoon\b"),
    re.compile(r"\b\d{1,2}:\d{2}"),
    re.compile(r"\bat\s+\d{1,2}\b"),
)

_WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")s?\b")
_ORDINAL_RE = re.compile(r"\b(?:the\s+)?(\d{1,2})(st|nd|rd|th)\b")
_THE_NUMBER_RE = re.compile(r"\bthe\s+(\d{1,2})\b")
_NUMBER_RE = re.compile(r"\b(\d{1,2})\b")
_MONTH_RE = re.compile(r"\b(" + "|".join(m for m in MONTHS if m != "may") + r")\b")
# "may" is only a month when it sits next to a day number
_MAY_RE = re.compile(r"\bmay\s+(?:the\s+)?\d{1,2}(?:st|nd|rd|th)?\b|\b\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?may\b")


def contains_time_indicator(text: str) -> bool:
    cleaned = text.lower()
    return any(pattern.search(cleaned) for pattern in TIME_INDICATORS)


def find_weekday(text: str) -> str | None:
    """First weekday name mentioned in text, lowercase."""
    match = _WEEKDAY_RE.search(text.lower())
    return match.group(1) if match else None


def find_month(text: str) -> int | None:
    cleaned = text.lower()
    match = _MONTH_RE.search(cleaned)
    if match:
        return MONTHS.index(match.group(1)) + 1
    if _MAY_RE.search(cleaned):
        return 5
    return None


def extract_requested_date(text: str, now: datetime, tz: ZoneInfo) -> date | None:
    """
    Resolve a concrete calendar date the user asked for, or None.

    Precedence, first match wins:
      1. today / tomorrow / [this|next] <weekday>
      2. explicit day of month ("the 17th", "12th", "february 12")
    Any time-of-day indicator rejects the whole text.
    """
    cleaned = text.lower().strip()
    if not cleaned or contains_time_indicator(cleaned):
        return None

    today = now.astimezone(tz).date()
    explicit_day = _explicit_day_of_month(cleaned)

    relative = _parse_relative(cleaned, today, has_explicit_day=explicit_day is not None)
    if relative is not None:
        return relative

    if explicit_day is not None:
        return _resolve_day_of_month(explicit_day, find_month(cleaned), today)

    return None


def _parse_relative(cleaned: str, today: date, has_explicit_day: bool) -> date | None:
    if re.search(r"\btomorrow\b", cleaned):
        return today + timedelta(days=1)
    if re.search(r"\btoday\b", cleaned):
        return today

    weekday = find_weekday(cleaned)
    if weekday is None:
        return None

    has_next = re.search(r"\bnext\b", cleaned) is not None
    has_this = re.search(r"\bthis\b", cleaned) is not None
    # "tuesday the 17th" names a date; the weekday is decoration
    if has_explicit_day and not (has_next or has_this):
        return None

    days_ahead = (WEEKDAYS.index(weekday) - today.weekday()) % 7
    if has_next:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def _explicit_day_of_month(cleaned: str) -> int | None:
    for pattern in (_ORDINAL_RE, _THE_NUMBER_RE):
        match = pattern.search(cleaned)
        if match:
            return _valid_day(int(match.group(1)))

    if find_month(cleaned) is not None:
        match = _NUMBER_RE.search(cleaned)
        if match:
            return _valid_day(int(match.group(1)))
    return None


def _valid_day(value: int) -> int | None:
    return value if 1 <= value <= 31 else None


def _resolve_day_of_month(day: int, month: int | None, today: date) -> date | None:
    if month is not None:
        for year in (today.year, today.year + 1):
            try:
                candidate = date(year, month, day)
            except ValueError:
                return None
            if candidate >= today:
                return candidate
        return None

    # Passed days roll to the next month that has that day
    year, month = today.year, today.month
    for _ in range(13):
        try:
            candidate = date(year, month, day)
        except ValueError:
            candidate = None
        if candidate is not None and candidate >= today:
            return candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return None
