from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from app.domain.entities.slot import Slot, parse_instant


class LeadStatus(str, Enum):
    ACTIVE = "active"
    BOOKED = "booked"
    DEAD = "dead"
    NEEDS_FOLLOWUP = "needs_followup"


@dataclass(frozen=True)
class PendingClaim:
    label: str | None
    start: datetime | None
    end: datetime | None
    claimed_at: datetime | None

    @property
    def is_complete(self) -> bool:
        return bool(self.label) and self.start is not None and self.end is not None

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        if self.claimed_at is None:
            return False
        return now.astimezone(timezone.utc) - self.claimed_at.astimezone(timezone.utc) > ttl

    def to_slot(self) -> Slot:
        if not self.is_complete:
            raise ValueError("Pending claim is missing slot fields")
        return Slot(start=self.start, end=self.end, label=self.label or "")


@dataclass(frozen=True)
class Lead:
    id: str
    psid: str
    status: LeadStatus = LeadStatus.ACTIVE
    bot_enabled: bool = True

    pending_slot_label: str | None = None
    pending_slot_start: datetime | None = None
    pending_slot_end: datetime | None = None
    pending_claimed_at: datetime | None = None

    booked_event_id: str | None = None
    booked_slot_label: str | None = None
    booked_slot_start: datetime | None = None
    booked_slot_end: datetime | None = None

    customer_address: str | None = None
    customer_phone: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_seen_at: datetime | None = None

    @property
    def pending_claim(self) -> PendingClaim | None:
        """Projection of the pending fields; None when no claim fields are set at all."""
        if not any(
            (self.pending_slot_label, self.pending_slot_start, self.pending_slot_end, self.pending_claimed_at)
        ):
            return None
        return PendingClaim(
            label=self.pending_slot_label,
            start=self.pending_slot_start,
            end=self.pending_slot_end,
            claimed_at=self.pending_claimed_at,
        )

    @property
    def is_booked(self) -> bool:
        return bool(self.booked_event_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Lead":
        return cls(
            id=str(row["id"]),
            psid=str(row.get("psid") or ""),
            status=LeadStatus(row.get("status") or LeadStatus.ACTIVE.value),
            bot_enabled=row.get("bot_enabled") is not False,
            pending_slot_label=row.get("pending_slot_label"),
            pending_slot_start=_instant(row.get("pending_slot_start")),
            pending_slot_end=_instant(row.get("pending_slot_end")),
            pending_claimed_at=_instant(row.get("pending_claimed_at")),
            booked_event_id=row.get("booked_event_id"),
            booked_slot_label=row.get("booked_slot_label"),
            booked_slot_start=_instant(row.get("booked_slot_start")),
            booked_slot_end=_instant(row.get("booked_slot_end")),
            customer_address=row.get("customer_address"),
            customer_phone=row.get("customer_phone"),
            created_at=_instant(row.get("created_at")),
            updated_at=_instant(row.get("updated_at")),
            last_seen_at=_instant(row.get("last_seen_at")),
        )


def _instant(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return parse_instant(str(value))
