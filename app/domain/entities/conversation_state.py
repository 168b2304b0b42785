from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.domain.entities.slot import Slot

CONTEXT_VERSION = 1

logger = logging.getLogger(__name__)


class Step(str, Enum):
    START = "start"
    CLOSING = "closing"
    POST_BOOK_COLLECT = "post_book_collect"


class CollectStep(str, Enum):
    ADDRESS = "address"
    PHONE = "phone"
    DONE = "done"


@dataclass(frozen=True)
class BookingContext:
    """
    Per-conversation memory.

    Closed record: keys not declared here are dropped on load, and a payload
    stored under another CONTEXT_VERSION is replaced with defaults.
    """

    version: int = CONTEXT_VERSION
    slots: tuple[Slot, ...] = ()
    offered_days: tuple[str, ...] = ()
    requested_day: str | None = None
    attempt_count: int = 0
    last_intent: str = "unknown"
    collect_step: CollectStep | None = None
    address: str | None = None
    phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "slots": [slot.to_dict() for slot in self.slots],
            "offered_days": list(self.offered_days),
            "requested_day": self.requested_day,
            "attempt_count": self.attempt_count,
            "last_intent": self.last_intent,
            "collect_step": self.collect_step.value if self.collect_step else None,
            "address": self.address,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BookingContext":
        if not data:
            return cls()
        version = data.get("version")
        if version != CONTEXT_VERSION:
            logger.info(
                "Discarding conversation context with unsupported version",
                extra={"reason": f"version={version!r}"},
            )
            return cls()

        collect_raw = data.get("collect_step")
        try:
            collect_step = CollectStep(collect_raw) if collect_raw else None
        except ValueError:
            collect_step = None

        return cls(
            slots=tuple(Slot.from_dict(item) for item in data.get("slots") or []),
            offered_days=tuple(str(day) for day in data.get("offered_days") or []),
            requested_day=data.get("requested_day"),
            attempt_count=int(data.get("attempt_count") or 0),
            last_intent=str(data.get("last_intent") or "unknown"),
            collect_step=collect_step,
            address=data.get("address"),
            phone=data.get("phone"),
        )


@dataclass(frozen=True)
class ConversationState:
    step: Step = Step.START
    context: BookingContext = field(default_factory=BookingContext)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConversationState":
        try:
            step = Step(row.get("step") or Step.START.value)
        except ValueError:
            step = Step.START
        return cls(step=step, context=BookingContext.from_dict(row.get("context")))
