from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.lead import Lead, LeadStatus, PendingClaim
from app.domain.entities.slot import Slot

PENDING_FIELDS = ("pending_slot_label", "pending_slot_start", "pending_slot_end", "pending_claimed_at")


@dataclass(frozen=True)
class Condition:
    """Single-column precondition evaluated by the store itself."""

    field: str
    op: str  # "is_null" | "eq"
    value: Any = None

    def holds(self, row: dict[str, Any]) -> bool:
        current = row.get(self.field)
        if self.op == "is_null":
            return current is None
        if self.op == "eq":
            return current == self.value
        raise ValueError(f"Unsupported condition operator: {self.op}")


def is_null(field: str) -> Condition:
    return Condition(field=field, op="is_null")


def equals(field: str, value: Any) -> Condition:
    return Condition(field=field, op="eq", value=value)


class LeadStorePort(ABC):
    @abstractmethod
    def upsert_by_external_id(self, psid: str) -> Lead:
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, lead_id: str) -> Lead:
        """Raises LeadNotFoundError when the row does not exist."""
        raise NotImplementedError

    @abstractmethod
    def update(self, lead_id: str, patch: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def conditional_update(
        self,
        lead_id: str,
        conditions: tuple[Condition, ...],
        patch: dict[str, Any],
    ) -> Lead | None:
        """
        Compare-and-swap on one lead row.

        Applies patch only if every condition holds at write time, atomically
        with respect to other writers. Returns the updated row, or None when a
        condition failed. A None result is not an error.
        """
        raise NotImplementedError

    @abstractmethod
    def insert_message(self, lead_id: str, direction: str, text: str | None, raw: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def try_insert_dedupe(self, message_id: str, lead_id: str) -> bool:
        """Record message_id. True if it was new, False if already seen."""
        raise NotImplementedError

    @abstractmethod
    def track_event(self, lead_id: str, event_type: str, data: dict[str, Any] | None = None) -> None:
        """Analytics sink. Must not raise."""
        raise NotImplementedError

    @abstractmethod
    def save_intent(self, lead_id: str, message_text: str, intent: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_active_addons(self) -> list[ServiceAddon]:
        raise NotImplementedError

    def set_status(self, lead_id: str, status: LeadStatus) -> None:
        self.update(lead_id, {"status": status.value})

    def set_bot_enabled(self, lead_id: str, enabled: bool) -> None:
        self.update(lead_id, {"bot_enabled": enabled})

    def claim_pending_slot(self, lead_id: str, slot: Slot, claimed_at: datetime) -> Lead | None:
        """Set the pending fields only while the lead holds neither a booking nor a claim."""
        return self.conditional_update(
            lead_id,
            (is_null("booked_event_id"), is_null("pending_claimed_at"), is_null("pending_slot_label")),
            {
                "pending_slot_label": slot.label,
                "pending_slot_start": slot.start,
                "pending_slot_end": slot.end,
                "pending_claimed_at": claimed_at,
                "status": LeadStatus.ACTIVE.value,
            },
        )

    def release_pending_claim(self, lead_id: str) -> bool:
        """Clear the pending fields. A finalized booking is left untouched; returns False in that case."""
        patch: dict[str, Any] = {name: None for name in PENDING_FIELDS}
        patch["status"] = LeadStatus.ACTIVE.value
        return self.conditional_update(lead_id, (is_null("booked_event_id"),), patch) is not None

    def finalize_booking(
        self,
        lead_id: str,
        claim: PendingClaim,
        event_id: str,
        address: str,
        phone: str,
    ) -> Lead | None:
        """Move the claim into the booked fields and clear it, in one conditional write."""
        patch: dict[str, Any] = {name: None for name in PENDING_FIELDS}
        patch.update(
            {
                "status": LeadStatus.BOOKED.value,
                "booked_event_id": event_id,
                "booked_slot_label": claim.label,
                "booked_slot_start": claim.start,
                "booked_slot_end": claim.end,
                "customer_address": address,
                "customer_phone": phone,
            }
        )
        return self.conditional_update(
            lead_id,
            (is_null("booked_event_id"), equals("pending_slot_label", claim.label)),
            patch,
        )
