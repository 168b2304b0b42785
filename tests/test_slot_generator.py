from datetime import date, datetime, time, timedelta

import pytest

from app.application.use_cases.slot_generator import SlotGenerator, parse_windows
from app.application.utils.slot_matcher import match_slot
from app.domain.entities.slot import BusyBlock
from app.infrastructure.calendar.mock_calendar import MockCalendar


def _generator(clock, tz, calendar=None, **kwargs):
    return SlotGenerator(calendar or MockCalendar(), tz, clock=clock, **kwargs)


def test_generate_skips_start_offset(clock, tz):
    """Monday morning with a 3-day offset: the first offers are Thursday."""
    slots = _generator(clock, tz).generate()
    assert [s.label for s in slots] == ["Thursday at 12:00 PM", "Thursday at 3:00 PM"]
    assert slots[0].end - slots[0].start == timedelta(hours=3)


def test_generate_skips_busy_windows(clock, tz):
    calendar = MockCalendar()
    calendar.add_busy(datetime(2026, 3, 5, 13, 0, tzinfo=tz), datetime(2026, 3, 5, 14, 0, tzinfo=tz))
    slots = _generator(clock, tz, calendar).generate()
    assert [s.label for s in slots] == ["Thursday at 3:00 PM", "Friday at 12:00 PM"]


def test_generate_falls_back_to_wider_range(clock, tz):
    calendar = MockCalendar(busy=[BusyBlock(datetime(2026, 3, 5, tzinfo=tz), datetime(2026, 3, 12, tzinfo=tz))])
    slots = _generator(clock, tz, calendar).generate()
    assert [s.start.date() for s in slots] == [date(2026, 3, 12), date(2026, 3, 12)]


def test_generate_returns_empty_when_fully_booked(clock, tz):
    calendar = MockCalendar(busy=[BusyBlock(datetime(2026, 3, 1, tzinfo=tz), datetime(2026, 5, 1, tzinfo=tz))])
    assert _generator(clock, tz, calendar).generate() == []


def test_forced_date_searches_that_date_only(clock, tz):
    slots = _generator(clock, tz).generate(forced_date=date(2026, 3, 4))
    assert [s.label for s in slots] == ["Wednesday at 12:00 PM", "Wednesday at 3:00 PM"]


def test_forced_date_with_one_opening_borrows_next_day(clock, tz):
    calendar = MockCalendar()
    calendar.add_busy(datetime(2026, 3, 4, 15, 0, tzinfo=tz), datetime(2026, 3, 4, 18, 0, tzinfo=tz))
    slots = _generator(clock, tz, calendar).generate(forced_date=date(2026, 3, 4))
    assert [s.label for s in slots] == ["Wednesday at 12:00 PM", "Thursday at 12:00 PM"]


def test_forced_date_in_the_past_is_empty(clock, tz):
    assert _generator(clock, tz).generate(forced_date=date(2026, 3, 1)) == []


def test_window_in_progress_is_still_offered(clock, tz):
    """Only windows that already ended are dropped."""
    clock.now = datetime(2026, 3, 2, 16, 0, tzinfo=tz)
    slots = _generator(clock, tz).generate_for_date(date(2026, 3, 2))
    assert [s.label for s in slots] == ["Monday at 3:00 PM"]
    assert all(s.end > clock() for s in slots)


def test_exclude_days(clock, tz):
    slots = _generator(clock, tz).generate_fixed_windows(14, exclude_days=["Thursday"], start_offset_days=3)
    assert [s.label for s in slots] == ["Friday at 12:00 PM", "Friday at 3:00 PM"]


def test_one_free_busy_query_per_search(clock, tz):
    calendar = MockCalendar()
    _generator(clock, tz, calendar).generate_fixed_windows(14, max_slots=28)
    assert calendar.free_busy_calls == 1


def test_duplicate_windows_are_deduplicated(clock, tz):
    windows = parse_windows("12:00-15:00,12:00-15:00,15:00-18:00")
    slots = _generator(clock, tz, windows=windows).generate_fixed_windows(7, max_slots=20)
    keys = [(s.start, s.end) for s in slots]
    assert len(keys) == len(set(keys))
    assert all(s.end > clock() for s in slots)


def test_slots_across_dst_keep_wall_clock(clock, tz):
    slots = _generator(clock, tz).generate_for_date(date(2026, 3, 8))
    assert slots[0].label == "Sunday at 12:00 PM"
    assert slots[0].start.utcoffset() == timedelta(hours=-6)


def test_search_day(clock, tz):
    search = _generator(clock, tz).search_day("Saturday")
    assert [s.label for s in search.day_slots] == ["Saturday at 12:00 PM", "Saturday at 3:00 PM"] * 2
    assert search.other_slot is not None
    assert search.other_slot.label == "Monday at 12:00 PM"


def test_is_slot_still_free(clock, tz):
    calendar = MockCalendar()
    generator = _generator(clock, tz, calendar)
    slot = generator.generate()[0]
    assert generator.is_slot_still_free(slot)
    calendar.add_busy(slot.start + timedelta(hours=1), slot.start + timedelta(hours=2))
    assert not generator.is_slot_still_free(slot)


def test_generated_label_resolves_back_to_its_slot(clock, tz):
    slots = _generator(clock, tz).generate_fixed_windows(7, max_slots=14, start_offset_days=3)
    for i in range(0, 6, 2):
        offered = slots[i : i + 2]
        for slot in offered:
            result = match_slot(slot.label, offered)
            assert result.matched
            assert result.slot == slot


def test_parse_windows():
    assert parse_windows("15:00-18:00, 12:00-15:00") == ((time(12), time(15)), (time(15), time(18)))
    with pytest.raises(ValueError):
        parse_windows("22:00-02:00")
    with pytest.raises(ValueError):
        parse_windows(" , ")
