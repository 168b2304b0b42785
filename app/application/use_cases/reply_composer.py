from __future__ import annotations

import random
from datetime import date
from typing import Sequence
from zoneinfo import ZoneInfo

from app.application.utils.intervals import (
    MONTHS,
    format_month_day,
    label_time,
    local_date,
    ordinal_suffix,
    weekday_name,
)
from app.application.utils.message_rules import QuestionType
from app.domain.entities.business_profile import BusinessProfile, ServiceAddon
from app.domain.entities.slot import Slot

FALLBACK_REPLY = "Sorry — something went wrong. What day/time works for you?"
ASK_DAY_TIME = "What day/time works best for you?"
ASK_DAY = "What day works best for you?"
OPEN_ENDED_ASK = "What day works best for you? I'll check my calendar and find the best times."
GRACEFUL_HANDOFF = (
    "I'm having trouble finding the perfect time for you. "
    "Let me have someone call you to schedule. What's the best number to reach you?"
)
CHANGE_ACK = "If you need to change it, tell me and I'll adjust"


def pick(variants: Sequence[str], seed: str | None = None) -> str:
    """
    Choose a template variant.

    With a seed the choice is stable for that seed (the user id), so the same
    person sees the same phrasing for the whole conversation.
    """
    if not seed:
        return random.choice(list(variants))
    h = 0
    for ch in seed:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return variants[abs(h) % len(variants)]


class ReplyComposer:
    """Customer-facing text. Every template only repeats facts it was handed."""

    def __init__(self, profile: BusinessProfile, timezone: ZoneInfo) -> None:
        self._profile = profile
        self._tz = timezone

    @property
    def profile(self) -> BusinessProfile:
        return self._profile

    # Offers

    def hard_close(self, slots: Sequence[Slot], seed: str | None = None) -> str:
        """First offer of a conversation; the only template that states the price."""
        if not slots:
            return ASK_DAY_TIME
        name = self._profile.service_name
        price = self._profile.service_price
        pair = self._pair(slots)

        if pair is not None:
            variants = [
                f"Hey! 👋 I can get you in for a {name} — it's {price}. I've got {pair}. "
                "Does one of those work, or tell me what date works best for you?",
                f"Perfect timing — {name} is {price}. I can do {pair}. Which works better, or what day would you prefer?",
                f"Awesome. {price} for the {name}. I've got {pair}. Want one of those, or tell me what date works for you?",
                f"Hey! {name} is {price}. I can do {pair}. Does one work, or what day is better for you?",
            ]
            return pick(variants, seed)

        label = slots[0].label
        variants = [
            f"Hey! 👋 I can get you in for a {name} — it's {price}. I've got {label} available. "
            "Does that work, or tell me what date works best for you?",
            f"Perfect timing — {name} is {price}. I can do {label}. Does that work, or what day would you prefer?",
            f"Awesome. {price} for the {name}. I've got {label}. Want me to lock it in, or tell me what date works for you?",
            f"Hey! {name} is {price}. I can do {label}. Does that work, or what day is better for you?",
        ]
        return pick(variants, seed)

    def re_close(self, slots: Sequence[Slot], seed: str | None = None, include_date: bool = False) -> str:
        if not slots:
            return ASK_DAY_TIME
        pair = self._pair(slots, include_date=include_date)

        if pair is not None:
            variants = [
                f"I've got {pair}. Does one work, or tell me what date works best for you?",
                f"I can do {pair}. Which is better, or what day would you prefer?",
                f"{pair[0].upper()}{pair[1:]} is open. Want one of those, or what day works for you?",
                f"I've got {pair}. Does one work for you, or what day would be better?",
            ]
            return pick(variants, seed)

        slot = slots[0]
        label = slot.label
        if include_date:
            label = f"{label} ({format_month_day(local_date(slot.start, self._tz))})"
        variants = [
            f"I've got {label} available. Does that work, or tell me what date works best for you?",
            f"I can do {label}. Does that work, or what day would you prefer?",
            f"{label} is open. Want me to lock it in, or what day is better?",
            f"I've got {label}. Does that work for you, or what day would be better?",
        ]
        return pick(variants, seed)

    def day_close(self, day_name: str, slots: Sequence[Slot], seed: str | None = None) -> str:
        """Answer to "do you have <weekday>?" when that weekday has openings."""
        day = day_name.capitalize()
        if not slots:
            return f"I don't have {day} available. What other day works for you?"
        actual = format_month_day(local_date(slots[0].start, self._tz))

        if len(slots) >= 2 and self._same_day(slots[0], slots[1]):
            time1, time2 = label_time(slots[0].label), label_time(slots[1].label)
            if time1 != time2:
                variants = [
                    f"Yep — I can do {day}, {actual} at {time1} or {time2}. Does one work, or what day would be better?",
                    f"Yes! {day}, {actual} works. I've got {time1} or {time2}. Which is better, or tell me what date you prefer?",
                    f"For sure — {day}, {actual} at {time1} or {time2}. Want one of those, or what day works for you?",
                    f"Yep! {day}, {actual}. I can do {time1} or {time2}. Does one work, or what day is better?",
                ]
                return pick(variants, seed)

        label = slots[0].label
        variants = [
            f"Yep — I can do {day}, {actual}. {label} is open. Does that work, or what day would be better?",
            f"Yes! {day}, {actual} works. I've got {label}. Want me to lock it in, or tell me what date you prefer?",
            f"For sure — {day}, {actual} is available. {label}. Does that work for you?",
            f"Yep! {day}, {actual}. I can do {label}. Want it, or what day is better?",
        ]
        return pick(variants, seed)

    def date_close(self, requested: date, slots: Sequence[Slot], seed: str | None = None) -> str:
        """Answer to "do you have the 17th?" when that date has openings."""
        if not slots:
            return "That date is fully booked. What other day works for you?"
        when = self._long_date(requested)

        if len(slots) >= 2:
            time1, time2 = label_time(slots[0].label), label_time(slots[1].label)
            if not self._same_day(slots[0], slots[1]):
                variants = [
                    f"Yep — {when} at {time1} is open. I also have {slots[1].label}. Which works better?",
                    f"Yes! I've got {when} at {time1}, or {slots[1].label}. Which is better?",
                ]
                return pick(variants, seed)
            if time1 != time2:
                variants = [
                    f"Yep — {when} at {time1} or {time2}. Does one work, or what day would be better?",
                    f"Yes! {when}. I've got {time1} or {time2}. Which is better, or tell me what date you prefer?",
                    f"For sure — {when} at {time1} or {time2}. Want one of those?",
                    f"{when} works. {time1} or {time2}. Does one work, or what day is better?",
                ]
                return pick(variants, seed)

        label = slots[0].label
        variants = [
            f"Yep — {when} works. {label} is open. Does that work, or what day would be better?",
            f"Yes! {when}. I've got {label}. Want me to lock it in, or tell me what date you prefer?",
            f"For sure — {when}. {label}. Does that work for you?",
        ]
        return pick(variants, seed)

    def single_date_offer(self, requested: date, slot: Slot) -> str:
        day, month = weekday_name(requested).capitalize(), MONTHS[requested.month - 1].capitalize()
        return f"I have {day}, {month} {requested.day} at {label_time(slot.label)}. Does that work?"

    def attachment_close(self, slots: Sequence[Slot], seed: str | None = None) -> str:
        if not slots:
            return "Got it — we can handle that. What day/time works best for you?"
        label = slots[0].label
        variants = [
            f"Got it — we can handle that. I've got {label} available. Does that work, or what day would be better?",
            f"Perfect — we do that. {label} is open. Want me to lock it in, or tell me what date you prefer?",
            f"Yep, we handle that. I can do {label}. Does that work for you?",
        ]
        return pick(variants, seed)

    def hesitation_fallback(self, slots: Sequence[Slot], seed: str | None = None) -> str:
        if len(slots) < 2:
            return "Which time works best for you?"
        time1 = label_time(slots[0].label) or slots[0].label
        time2 = label_time(slots[1].label) or slots[1].label
        if not self._same_day(slots[0], slots[1]):
            time1, time2 = slots[0].label, slots[1].label
        variants = [
            f"No worries — which is easier for you, {time1} or {time2}? I can hold it for a minute.",
            f"All good — {time1} or {time2}? Which works better?",
            f"Take your time — {time1} or {time2}? I can lock either one in.",
            f"No rush — which is better, {time1} or {time2}?",
        ]
        return pick(variants, seed)

    def choice_required(self, slots: Sequence[Slot]) -> str:
        time1 = label_time(slots[0].label) or slots[0].label
        time2 = label_time(slots[1].label) or slots[1].label
        return f"Great! Which time works better — 1 for {time1} or 2 for {time2}?"

    def ambiguous_choice(self, slots: Sequence[Slot]) -> str:
        return f"Great! Which one? Reply with 1 for {slots[0].label} or 2 for {slots[1].label}."

    # Booking steps

    def claimed_ask_address(self, slot_label: str, seed: str | None = None) -> str:
        variants = [
            f"Perfect — I can hold {slot_label} for you. What's the address for the service?",
            f"Got it — {slot_label} is yours. Where should we come to?",
            f"Awesome — holding {slot_label} for you. What's the service address?",
            f"Great! {slot_label} is reserved. What address?",
        ]
        return pick(variants, seed)

    def collected_address_ask_phone(self, seed: str | None = None) -> str:
        variants = [
            "Perfect — and what's the best phone number to reach you?",
            "Got it — what's your phone number?",
            "Great — phone number?",
            "Awesome — best number to call you?",
        ]
        return pick(variants, seed)

    def finalized_booking(self, slot_label: str, seed: str | None = None) -> str:
        variants = [
            f"Perfect — you're all set ✅ We'll see you {slot_label}!",
            f"Done ✅ — booked for {slot_label}. See you then!",
            f"You're booked ✅ — {slot_label}. Looking forward to it!",
            f"All set ✅ — {slot_label} is confirmed. See you soon!",
        ]
        return pick(variants, seed)

    def pending_expired(self, slots: Sequence[Slot], seed: str | None = None) -> str:
        if not slots:
            return "Sorry — that time got away. What day works best for you?"
        label = slots[0].label
        variants = [
            f"Sorry — that slot got taken. I've got {label} available now. Does that work, or what day is better?",
            f"Ah — someone grabbed that time. I can do {label}. Want me to lock it in, or tell me what date you prefer?",
            f"That slot filled up — but I have {label}. Does that work for you?",
        ]
        return pick(variants, seed)

    # Short replies

    def stop_response(self) -> str:
        return "No problem — I'll stop messaging you."

    def human_response(self) -> str:
        return "Sure — what's the best number to reach you?"

    def gratitude_response(self, seed: str | None = None) -> str:
        variants = [
            "You're all set! 🙌 Hit me up if you need anything else.",
            "Perfect! See you then. Let me know if anything comes up.",
            "Awesome! You're good to go. Reach out if you need to adjust anything.",
            "You got it! See you soon. 👍",
            "All set! Let me know if you need anything before then.",
            "Perfect! Looking forward to it. Hit me up if plans change.",
        ]
        return pick(variants, seed)

    # Topical answers

    def answer_question(
        self,
        question_type: QuestionType,
        addons: Sequence[ServiceAddon] = (),
        seed: str | None = None,
    ) -> str:
        profile = self._profile

        if question_type in (QuestionType.SERVICES, QuestionType.INCLUDED):
            return profile.service_included

        if question_type == QuestionType.PET_HAIR:
            addon = next((a for a in addons if a.addon_key == "dog_hair"), None)
            if addon is None:
                return "Yep, we handle dog hair removal. It's an additional charge depending on severity."
            price = addon.price_display
            return pick(
                [
                    f"Totally — that's exactly what we do. For dog hair, it's an additional {price}.",
                    f"Yep, we handle that all the time. Dog hair removal is {price} extra.",
                    f"For sure. Dog hair is {price} extra.",
                ],
                seed,
            )

        if question_type == QuestionType.PRICE:
            return pick(
                [
                    f"The {profile.service_name} is {profile.service_price}.",
                    f"{profile.service_price} for the {profile.service_name}.",
                    f"It's {profile.service_price} for the full {profile.service_name}.",
                ],
                seed,
            )

        if question_type == QuestionType.SERVICE_AREA:
            return pick(
                [
                    f"We're mobile — we come to you! We serve {profile.service_area}. What's your ZIP code?",
                    f"We come to your location. We cover {profile.service_area}. What ZIP are you in?",
                    f"Mobile service — we come to you in {profile.service_area}. What's your ZIP?",
                ],
                seed,
            )

        if question_type == QuestionType.DURATION:
            return pick(
                [
                    f"The service typically takes {profile.service_duration}.",
                    f"Usually {profile.service_duration} depending on the vehicle.",
                    f"About {profile.service_duration} for the full detail.",
                ],
                seed,
            )

        if question_type == QuestionType.RESCHEDULE:
            return pick(
                [
                    "No problem, we can adjust your appointment.",
                    "Sure thing — we can move it.",
                    "Totally — let's reschedule.",
                ],
                seed,
            )

        if question_type == QuestionType.AVAILABILITY:
            return pick(
                [
                    "Let me check what else is available.",
                    "Sure — let me see what I've got.",
                    "Yep, let me pull up the schedule.",
                ],
                seed,
            )

        if question_type == QuestionType.GENERIC:
            return pick(["Got it.", "Yep.", "For sure.", "Totally."], seed)

        return "Got it."

    def _pair(self, slots: Sequence[Slot], include_date: bool = False) -> str | None:
        """
        "Saturday at 12:00 PM or 3:00 PM" for two times on one day, or both full
        labels when the slots fall on different days. None when only one
        distinct option exists.
        """
        if len(slots) < 2:
            return None
        first, second = slots[0], slots[1]
        time1, time2 = label_time(first.label), label_time(second.label)

        if self._same_day(first, second):
            if time1 == time2:
                return None
            day = first.label.split(" at ", 1)[0]
            if include_date:
                day = f"{day} ({format_month_day(local_date(first.start, self._tz))})"
            return f"{day} at {time1} or {time2}"

        if include_date:
            return (
                f"{first.label} ({format_month_day(local_date(first.start, self._tz))}) or "
                f"{second.label} ({format_month_day(local_date(second.start, self._tz))})"
            )
        return f"{first.label} or {second.label}"

    def _same_day(self, a: Slot, b: Slot) -> bool:
        return local_date(a.start, self._tz) == local_date(b.start, self._tz)

    def _long_date(self, day: date) -> str:
        """'Tuesday, March the 17th'."""
        weekday, month = weekday_name(day).capitalize(), MONTHS[day.month - 1].capitalize()
        return f"{weekday}, {month} the {day.day}{ordinal_suffix(day.day)}"
