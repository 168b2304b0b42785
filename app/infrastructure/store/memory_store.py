from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from app.application.exceptions import LeadNotFoundError
from app.application.ports.conversation_store import ConversationStorePort
from app.application.ports.lead_store import Condition, LeadStorePort
from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.conversation_state import ConversationState
from app.domain.entities.lead import Lead, LeadStatus


class MemoryLeadStore(LeadStorePort):
    """
    Lead rows, audit log and analytics kept in process.

    One lock guards every row, which makes `conditional_update` a true
    compare-and-swap for threads sharing this instance.
    """

    def __init__(self, addons: list[ServiceAddon] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, dict[str, Any]] = {}
        self._ids_by_psid: dict[str, str] = {}
        self._dedupe: dict[str, str] = {}
        self._addons = list(addons or [])
        self.messages: list[dict[str, Any]] = []
        self.events: list[dict[str, Any]] = []
        self.intents: list[dict[str, Any]] = []
        self._logger = logging.getLogger(__name__)

    def upsert_by_external_id(self, psid: str) -> Lead:
        now = _utcnow()
        with self._lock:
            lead_id = self._ids_by_psid.get(psid)
            if lead_id is None:
                lead_id = str(uuid.uuid4())
                self._ids_by_psid[psid] = lead_id
                self._rows[lead_id] = {
                    "id": lead_id,
                    "psid": psid,
                    "status": LeadStatus.ACTIVE.value,
                    "bot_enabled": True,
                    "created_at": now,
                }
            row = self._rows[lead_id]
            row["last_seen_at"] = now
            row["updated_at"] = now
            return Lead.from_row(dict(row))

    def get_by_id(self, lead_id: str) -> Lead:
        with self._lock:
            row = self._rows.get(lead_id)
            if row is None:
                raise LeadNotFoundError(f"Lead not found: {lead_id}")
            return Lead.from_row(dict(row))

    def update(self, lead_id: str, patch: dict[str, Any]) -> None:
        with self._lock:
            row = self._row(lead_id)
            row.update(patch)
            row["updated_at"] = _utcnow()

    def conditional_update(
        self,
        lead_id: str,
        conditions: tuple[Condition, ...],
        patch: dict[str, Any],
    ) -> Lead | None:
        with self._lock:
            row = self._row(lead_id)
            if not all(condition.holds(row) for condition in conditions):
                return None
            row.update(patch)
            row["updated_at"] = _utcnow()
            return Lead.from_row(dict(row))

    def insert_message(self, lead_id: str, direction: str, text: str | None, raw: dict[str, Any]) -> None:
        with self._lock:
            self.messages.append({"lead_id": lead_id, "direction": direction, "text": text, "raw": dict(raw or {})})

    def try_insert_dedupe(self, message_id: str, lead_id: str) -> bool:
        with self._lock:
            if message_id in self._dedupe:
                return False
            self._dedupe[message_id] = lead_id
            return True

    def track_event(self, lead_id: str, event_type: str, data: dict[str, Any] | None = None) -> None:
        with self._lock:
            self.events.append({"lead_id": lead_id, "event_type": event_type, "event_data": dict(data or {})})

    def save_intent(self, lead_id: str, message_text: str, intent: str) -> None:
        with self._lock:
            self.intents.append({"lead_id": lead_id, "message_text": message_text, "detected_intent": intent})

    def get_active_addons(self) -> list[ServiceAddon]:
        return sorted(self._addons, key=lambda addon: addon.name)

    def event_types(self, lead_id: str | None = None) -> list[str]:
        with self._lock:
            return [e["event_type"] for e in self.events if lead_id is None or e["lead_id"] == lead_id]

    def _row(self, lead_id: str) -> dict[str, Any]:
        row = self._rows.get(lead_id)
        if row is None:
            raise LeadNotFoundError(f"Lead not found: {lead_id}")
        return row


class MemoryConversationStore(ConversationStorePort):
    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}
        self._lock = threading.Lock()

    def get_state(self, lead_id: str) -> ConversationState | None:
        with self._lock:
            return self._states.get(lead_id)

    def upsert_state(self, lead_id: str, state: ConversationState) -> None:
        with self._lock:
            self._states[lead_id] = state


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
