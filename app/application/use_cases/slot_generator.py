from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from app.application.ports.calendar import CalendarPort
from app.application.utils.intervals import (
    format_slot_label,
    local_date,
    make_datetime_in_tz,
    overlaps,
    weekday_name,
)
from app.domain.entities.slot import BusyBlock, Slot

Window = tuple[time, time]

DEFAULT_WINDOWS: tuple[Window, ...] = ((time(12, 0), time(15, 0)), (time(15, 0), time(18, 0)))
BACKFILL_DAYS = 14


def parse_windows(value: str) -> tuple[Window, ...]:
    """Parse "12:00-15:00,15:00-18:00". Windows must start and end on the same day."""
    windows: list[Window] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        start_raw, _, end_raw = chunk.partition("-")
        start = time.fromisoformat(start_raw.strip())
        end = time.fromisoformat(end_raw.strip())
        if end <= start:
            raise ValueError(f"Slot window must not span midnight: {chunk!r}")
        windows.append((start, end))
    if not windows:
        raise ValueError("At least one slot window is required")
    return tuple(sorted(windows))


@dataclass(frozen=True)
class DaySearch:
    day_slots: list[Slot]
    other_slot: Slot | None


class SlotGenerator:
    def __init__(
        self,
        calendar: CalendarPort,
        timezone: ZoneInfo,
        windows: tuple[Window, ...] = DEFAULT_WINDOWS,
        days_primary: int = 7,
        days_fallback: int = 14,
        start_offset_days: int = 3,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._calendar = calendar
        self._tz = timezone
        self._windows = windows
        self._days_primary = days_primary
        self._days_fallback = days_fallback
        self._start_offset_days = start_offset_days
        self._clock = clock or (lambda: datetime.now(timezone))
        self._logger = logging.getLogger(__name__)

    @property
    def timezone(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        return self._clock()

    def generate(
        self,
        forced_date: date | None = None,
        days_primary: int | None = None,
        days_fallback: int | None = None,
        start_offset_days: int | None = None,
    ) -> list[Slot]:
        """
        Up to two offerable slots, most imminent first.

        With forced_date, only that date is searched; a lone survivor is paired
        with the first slot of the next day that has one. Otherwise the primary
        range is searched and, if it yields fewer than two, the fallback range.
        An empty list means no availability.
        """
        if forced_date is not None:
            slots = self.generate_for_date(forced_date)
            if len(slots) == 1:
                backfill = self.generate_fixed_windows(
                    days=BACKFILL_DAYS,
                    max_slots=1,
                    start_date=forced_date + timedelta(days=1),
                )
                slots = _dedupe(slots + backfill)
            return slots[:2]

        offset = self._start_offset_days if start_offset_days is None else start_offset_days
        primary = self._days_primary if days_primary is None else days_primary
        fallback = self._days_fallback if days_fallback is None else days_fallback

        slots = self.generate_fixed_windows(days=primary, max_slots=2, start_offset_days=offset)
        if len(slots) >= 2:
            return slots[:2]

        self._logger.info(
            "Primary slot range exhausted, widening search",
            extra={"reason": f"found={len(slots)} primary={primary} fallback={fallback}"},
        )
        return self.generate_fixed_windows(days=fallback, max_slots=2, start_offset_days=offset)[:2]

    def generate_for_date(self, day: date) -> list[Slot]:
        return self.generate_fixed_windows(days=1, max_slots=len(self._windows), start_date=day)

    def generate_fixed_windows(
        self,
        days: int,
        exclude_days: Iterable[str] = (),
        max_slots: int = 2,
        start_offset_days: int = 0,
        start_date: date | None = None,
    ) -> list[Slot]:
        """
        Enumerate catalog windows over `days` consecutive local days.

        One free/busy query covers the whole range. Windows that have already
        ended, overlap a busy block, fall on an excluded weekday or repeat an
        earlier (start, end) are skipped.
        """
        if days <= 0 or max_slots <= 0:
            return []

        now = self._clock()
        first_day = start_date or (local_date(now, self._tz) + timedelta(days=start_offset_days))
        last_day = first_day + timedelta(days=days)
        range_start = make_datetime_in_tz(self._tz, first_day.year, first_day.month, first_day.day, 0, 0)
        range_end = make_datetime_in_tz(self._tz, last_day.year, last_day.month, last_day.day, 0, 0)
        if range_end <= now:
            return []

        busy = self._calendar.free_busy(range_start, range_end)
        excluded = {name.lower() for name in exclude_days}

        out: list[Slot] = []
        seen: set[tuple[datetime, datetime]] = set()
        for i in range(days):
            day = first_day + timedelta(days=i)
            if weekday_name(day) in excluded:
                continue
            for window_start, window_end in self._windows:
                start = make_datetime_in_tz(self._tz, day.year, day.month, day.day, window_start.hour, window_start.minute)
                end = make_datetime_in_tz(self._tz, day.year, day.month, day.day, window_end.hour, window_end.minute)
                if end <= now:
                    continue
                if _is_busy(start, end, busy):
                    continue
                key = (start, end)
                if key in seen:
                    continue
                seen.add(key)
                out.append(Slot(start=start, end=end, label=format_slot_label(start, self._tz)))
                if len(out) >= max_slots:
                    return out
        return out

    def search_day(self, day_name: str, days: int = BACKFILL_DAYS) -> DaySearch:
        """All free slots on a named weekday within `days`, plus the first free slot of any other day."""
        day_name = day_name.lower()
        candidates = self.generate_fixed_windows(days=days, max_slots=days * len(self._windows))
        day_slots = [s for s in candidates if weekday_name(local_date(s.start, self._tz)) == day_name]
        other = next((s for s in candidates if weekday_name(local_date(s.start, self._tz)) != day_name), None)
        return DaySearch(day_slots=day_slots, other_slot=other)

    def is_slot_still_free(self, slot: Slot) -> bool:
        busy = self._calendar.free_busy(slot.start, slot.end)
        return not _is_busy(slot.start, slot.end, busy)


def _is_busy(start: datetime, end: datetime, busy: list[BusyBlock]) -> bool:
    return any(overlaps(start, end, block.start, block.end) for block in busy)


def _dedupe(slots: list[Slot]) -> list[Slot]:
    seen: set[tuple[datetime, datetime]] = set()
    out: list[Slot] = []
    for slot in slots:
        key = (slot.start, slot.end)
        if key in seen:
            continue
        seen.add(key)
        out.append(slot)
    return out
