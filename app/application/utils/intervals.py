from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

# Index matches date.weekday()
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

_LABEL_TIME_RE = re.compile(r"(\d{1,2}:\d{2}\s*(?:AM|PM))", re.IGNORECASE)
_LABEL_DAY_RE = re.compile(r"^(\w+day)\b", re.IGNORECASE)


def make_datetime_in_tz(tz: ZoneInfo, year: int, month: int, day: int, hour: int, minute: int) -> datetime:
    """
    Absolute instant for a wall-clock time in tz.

    Day overflow is normalised (day 32 of January is February 1st) so callers
    can step forward by adding to the day component.
    """
    base = date(year, month, 1) + timedelta(days=day - 1)
    return datetime.combine(base, time(hour, minute), tzinfo=tz)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    return instant.astimezone(tz).date()


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def ordinal_suffix(n: int) -> str:
    if 3 < n < 21:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def format_clock(instant: datetime, tz: ZoneInfo) -> str:
    local = instant.astimezone(tz)
    hour = local.hour % 12 or 12
    period = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {period}"


def format_slot_label(instant: datetime, tz: ZoneInfo) -> str:
    """'Saturday at 12:30 PM' in tz."""
    local = instant.astimezone(tz)
    return f"{weekday_name(local.date()).capitalize()} at {format_clock(instant, tz)}"


def format_month_day(day: date) -> str:
    """'March 17th'."""
    return f"{MONTHS[day.month - 1].capitalize()} {day.day}{ordinal_suffix(day.day)}"


def label_time(label: str) -> str:
    match = _LABEL_TIME_RE.search(label)
    return match.group(1) if match else ""


def label_day(label: str) -> str:
    match = _LABEL_DAY_RE.match(label.strip())
    return match.group(1).lower() if match else ""
