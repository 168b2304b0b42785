from app.application.utils.slot_matcher import match_slot


def test_confirmation_with_two_options_requires_choice(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert [s.label for s in slots] == ["Saturday at 12:00 PM", "Saturday at 3:00 PM"]

    result = match_slot("yes", slots)
    assert result.requires_choice
    assert not result.matched


def test_index_reply_picks_slot(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert match_slot("2", slots).slot == slots[1]
    assert match_slot("1", slots).slot == slots[0]
    assert match_slot("#2!", slots).slot == slots[1]


def test_duplicate_offer_confirms_directly(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 12)]
    result = match_slot("sounds good", slots)
    assert result.matched
    assert not result.requires_choice
    assert result.slot == slots[0]


def test_single_offer_confirms_directly(make_slot):
    slots = [make_slot(7, 12)]
    assert match_slot("ok", slots).slot == slots[0]


def test_confirmation_needs_whole_word(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert not match_slot("yesterday", slots).requires_choice


def test_time_forms(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert match_slot("3pm", slots).slot == slots[1]
    assert match_slot("3:00", slots).slot == slots[1]
    assert match_slot("12", slots).slot == slots[0]
    assert match_slot("noon", slots).slot == slots[0]


def test_weekday_with_time_prefers_matching_time(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert match_slot("saturday at 3", slots).slot == slots[1]
    assert match_slot("Saturday at 3:00 PM", slots).slot == slots[1]
    assert match_slot("saturday", slots).slot == slots[0]


def test_weekday_across_days(make_slot):
    slots = [make_slot(5, 12), make_slot(6, 12)]
    assert match_slot("friday works", slots).slot == slots[1]


def test_confirmation_naming_a_day_selects_that_day(make_slot):
    slots = [make_slot(7, 12), make_slot(8, 15)]
    assert [s.label for s in slots] == ["Saturday at 12:00 PM", "Sunday at 3:00 PM"]

    for text in ("sunday sounds good", "yes sunday", "ok, Sunday please"):
        result = match_slot(text, slots)
        assert result.matched, text
        assert result.slot == slots[1], text
        assert not result.requires_choice, text


def test_no_match(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    assert not match_slot("7", slots).matched
    assert not match_slot("how much is it?", slots).matched
    assert not match_slot("yes", []).matched


def test_matching_is_idempotent(make_slot):
    slots = [make_slot(7, 12), make_slot(7, 15)]
    for text in ("yes", "2", "saturday at 3", "nope"):
        assert match_slot(text, slots) == match_slot(text, slots)
