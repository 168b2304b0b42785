from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from app.application.exceptions import CalendarError, StoreError
from app.application.ports.calendar import CalendarPort
from app.application.ports.lead_store import LeadStorePort
from app.application.ports.notifier import BookingNotification, NotificationPort
from app.application.use_cases.slot_generator import SlotGenerator
from app.domain.entities.lead import Lead
from app.domain.entities.slot import Slot

ORPHANED_EVENT_NOTE = "NOT CONFIRMED: the booking was never recorded for this lead. Delete this event."


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    HELD_PENDING = "held_pending"
    ALREADY_BOOKED = "already_booked"
    LOST = "lost"


class FinalizeOutcome(str, Enum):
    BOOKED = "booked"
    CLAIM_MISSING = "claim_missing"
    MISSING_ADDRESS = "missing_address"
    MISSING_PHONE = "missing_phone"
    SLOT_TAKEN = "slot_taken"
    FAILED = "failed"


@dataclass(frozen=True)
class ClaimResult:
    outcome: ClaimOutcome
    slot_label: str | None = None


@dataclass(frozen=True)
class FinalizeResult:
    outcome: FinalizeOutcome
    slot_label: str | None = None
    event_id: str | None = None


class ClaimProtocol:
    """
    Claim -> finalize over the lead store's compare-and-swap primitive.

    A lead holds at most one of {pending claim, finalized booking}. The claim
    write only lands while the row has neither, so of two concurrent claims on
    one lead exactly one wins; the loser re-reads the row to learn what it lost
    to. Finalize moves the claim into the booked fields in the same conditional
    write that clears it, and only after the calendar accepted the event.
    """

    def __init__(
        self,
        lead_store: LeadStorePort,
        calendar: CalendarPort,
        slot_generator: SlotGenerator,
        notifier: NotificationPort,
        service_name: str,
        claim_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._leads = lead_store
        self._calendar = calendar
        self._slots = slot_generator
        self._notifier = notifier
        self._service_name = service_name
        self._claim_ttl = claim_ttl
        self._clock = clock or slot_generator.now
        self._logger = logging.getLogger(__name__)

    def claim(self, lead_id: str, slot: Slot) -> ClaimResult:
        lead = self._leads.get_by_id(lead_id)
        if self._has_stale_claim(lead):
            self._logger.info(
                "Releasing stale pending claim before new claim",
                extra={"lead_id": lead_id, "slot": lead.pending_slot_label},
            )
            self._leads.release_pending_claim(lead_id)

        claimed = self._leads.claim_pending_slot(lead_id, slot, self._clock())
        if claimed is not None:
            self._logger.info("Slot claimed", extra={"lead_id": lead_id, "slot": slot.label})
            self._leads.track_event(lead_id, "slot_claimed_pending", {"slot": slot.label})
            return ClaimResult(outcome=ClaimOutcome.CLAIMED, slot_label=slot.label)

        fresh = self._leads.get_by_id(lead_id)
        self._logger.info(
            "Claim lost",
            extra={
                "lead_id": lead_id,
                "slot": slot.label,
                "pending": fresh.pending_slot_label,
                "booked": fresh.booked_slot_label,
            },
        )
        if fresh.pending_slot_label:
            return ClaimResult(outcome=ClaimOutcome.HELD_PENDING, slot_label=fresh.pending_slot_label)
        if fresh.booked_slot_label:
            return ClaimResult(outcome=ClaimOutcome.ALREADY_BOOKED, slot_label=fresh.booked_slot_label)
        return ClaimResult(outcome=ClaimOutcome.LOST)

    def finalize(self, lead_id: str, psid: str, address: str | None, phone: str | None) -> FinalizeResult:
        lead = self._leads.get_by_id(lead_id)
        claim = lead.pending_claim

        if claim is None or not claim.is_complete or claim.is_expired(self._clock(), self._claim_ttl):
            self._logger.info(
                "Pending claim missing, expired or incomplete",
                extra={"lead_id": lead_id, "slot": claim.label if claim else None},
            )
            self._leads.release_pending_claim(lead_id)
            return FinalizeResult(outcome=FinalizeOutcome.CLAIM_MISSING)

        if not address:
            return FinalizeResult(outcome=FinalizeOutcome.MISSING_ADDRESS, slot_label=claim.label)
        if not phone:
            return FinalizeResult(outcome=FinalizeOutcome.MISSING_PHONE, slot_label=claim.label)

        slot = claim.to_slot()
        event_id: str | None = None
        try:
            if not self._slots.is_slot_still_free(slot):
                self._logger.info("Pending slot was taken", extra={"lead_id": lead_id, "slot": slot.label})
                self._leads.release_pending_claim(lead_id)
                return FinalizeResult(outcome=FinalizeOutcome.SLOT_TAKEN, slot_label=slot.label)

            description = f"Address: {address}\nPhone: {phone}\nPSID: {psid}"
            event_id = self._calendar.create_event(slot, title=self._service_name, description=description)
            if not isinstance(event_id, str) or not event_id.strip():
                raise CalendarError(f"Calendar returned an invalid event id: {event_id!r}")

            booked = self._leads.finalize_booking(lead_id, claim, event_id, address, phone)
            if booked is None:
                self._flag_orphaned_event(lead_id, slot, event_id, description)
                raise StoreError("Pending claim changed before the booking could be recorded")
        except Exception:
            self._logger.exception(
                "Finalize failed",
                extra={"lead_id": lead_id, "slot": slot.label, "event_id": event_id},
            )
            self._leads.release_pending_claim(lead_id)
            return FinalizeResult(outcome=FinalizeOutcome.FAILED, slot_label=slot.label)

        self._logger.info("Booking finalized", extra={"lead_id": lead_id, "slot": slot.label, "event_id": event_id})
        self._leads.set_bot_enabled(lead_id, False)
        try:
            self._notifier.notify_booking(
                BookingNotification(slot_label=slot.label, address=address, phone=phone, psid=psid, event_id=event_id)
            )
            self._leads.track_event(
                lead_id,
                "booking_completed",
                {"slot": slot.label, "eventId": event_id, "address": address, "phone": phone},
            )
        except Exception:
            self._logger.exception("Post-booking notification failed", extra={"lead_id": lead_id, "event_id": event_id})
        return FinalizeResult(outcome=FinalizeOutcome.BOOKED, slot_label=slot.label, event_id=event_id)

    def holds_live_claim(self, lead: Lead) -> bool:
        claim = lead.pending_claim
        return claim is not None and claim.is_complete and not claim.is_expired(self._clock(), self._claim_ttl)

    def _has_stale_claim(self, lead: Lead) -> bool:
        claim = lead.pending_claim
        if claim is None or lead.is_booked:
            return False
        return not claim.is_complete or claim.is_expired(self._clock(), self._claim_ttl)

    def _flag_orphaned_event(self, lead_id: str, slot: Slot, event_id: str, description: str) -> None:
        self._logger.error(
            "Calendar event orphaned, needs manual cleanup",
            extra={"lead_id": lead_id, "slot": slot.label, "event_id": event_id},
        )
        try:
            self._calendar.update_event_description(event_id, f"{ORPHANED_EVENT_NOTE}\n\n{description}")
        except Exception:
            self._logger.exception("Could not mark orphaned calendar event", extra={"event_id": event_id})
