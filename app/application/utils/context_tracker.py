from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Sequence

from app.application.utils.intervals import label_day
from app.domain.entities.conversation_state import BookingContext
from app.domain.entities.slot import Slot

OPEN_ENDED_THRESHOLD = 2
GRACEFUL_DEGRADATION_THRESHOLD = 3


def days_from_slots(slots: Iterable[Slot]) -> list[str]:
    return [day for day in (label_day(slot.label) for slot in slots) if day]


def track_offered_slots(
    context: BookingContext,
    slots: Sequence[Slot],
    is_successful_match: bool = False,
) -> BookingContext:
    """
    Record a new offer. The attempt counter drops to zero when the offer
    satisfies what the user asked for and grows by one otherwise.
    """
    offered = list(context.offered_days)
    for day in days_from_slots(slots):
        if day not in offered:
            offered.append(day)
    return replace(
        context,
        slots=tuple(slots),
        offered_days=tuple(offered),
        attempt_count=0 if is_successful_match else context.attempt_count + 1,
    )


def replace_slots(context: BookingContext, slots: Sequence[Slot]) -> BookingContext:
    """Swap the offered slots without counting an attempt."""
    return replace(context, slots=tuple(slots))


def track_requested_day(context: BookingContext, day: str) -> BookingContext:
    return replace(context, requested_day=day.lower())


def track_intent(context: BookingContext, intent: str) -> BookingContext:
    return replace(context, last_intent=intent)


def reset_attempt_count(context: BookingContext) -> BookingContext:
    return replace(context, attempt_count=0)


def reset_collection(context: BookingContext) -> BookingContext:
    return replace(context, collect_step=None, address=None, phone=None)


def excluded_days(context: BookingContext) -> list[str]:
    return list(context.offered_days)


def should_ask_open_ended(context: BookingContext) -> bool:
    return context.attempt_count >= OPEN_ENDED_THRESHOLD


def should_trigger_graceful_degradation(context: BookingContext) -> bool:
    return context.attempt_count >= GRACEFUL_DEGRADATION_THRESHOLD
