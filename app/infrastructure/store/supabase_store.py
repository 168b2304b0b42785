from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from app.application.exceptions import LeadNotFoundError, StoreError
from app.application.ports.conversation_store import ConversationStorePort
from app.application.ports.lead_store import Condition, LeadStorePort
from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.conversation_state import ConversationState
from app.domain.entities.lead import Lead


class PostgrestClient:
    """Thin PostgREST wrapper: service-role headers and non-2xx -> StoreError."""

    def __init__(self, url: str, service_key: str, client: httpx.Client | None = None) -> None:
        if not url or not service_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the Supabase store")
        self._base_url = f"{url.rstrip('/')}/rest/v1"
        self._service_key = service_key
        self._client = client or httpx.Client(timeout=10.0)

    def request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        try:
            resp = self._client.request(
                method,
                f"{self._base_url}/{table}",
                params=params,
                json=_serialize(body) if body is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {table} failed: {e}") from e
        return resp

    def rows(self, method: str, table: str, **kwargs: Any) -> list[dict[str, Any]]:
        resp = self.request(method, table, **kwargs)
        _raise_for_status(resp, method, table)
        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]


class SupabaseLeadStore(LeadStorePort):
    def __init__(self, client: PostgrestClient) -> None:
        self._db = client
        self._logger = logging.getLogger(__name__)

    def upsert_by_external_id(self, psid: str) -> Lead:
        # status/bot_enabled come from column defaults on insert and are left alone on conflict
        rows = self._db.rows(
            "POST",
            "bot_leads",
            params=[("on_conflict", "psid"), ("select", "*")],
            body=[{"psid": psid, "last_seen_at": datetime.now(timezone.utc)}],
            prefer="resolution=merge-duplicates,return=representation",
        )
        if not rows:
            raise StoreError("upsert_by_external_id: no row returned")
        return Lead.from_row(rows[0])

    def get_by_id(self, lead_id: str) -> Lead:
        rows = self._db.rows("GET", "bot_leads", params=[("id", f"eq.{lead_id}"), ("select", "*")])
        if not rows:
            raise LeadNotFoundError(f"Lead not found: {lead_id}")
        return Lead.from_row(rows[0])

    def update(self, lead_id: str, patch: dict[str, Any]) -> None:
        self._db.rows("PATCH", "bot_leads", params=[("id", f"eq.{lead_id}")], body=patch, prefer="return=minimal")

    def conditional_update(
        self,
        lead_id: str,
        conditions: tuple[Condition, ...],
        patch: dict[str, Any],
    ) -> Lead | None:
        params = [("id", f"eq.{lead_id}")] + [_filter(condition) for condition in conditions]
        rows = self._db.rows("PATCH", "bot_leads", params=params, body=patch, prefer="return=representation")
        return Lead.from_row(rows[0]) if rows else None

    def insert_message(self, lead_id: str, direction: str, text: str | None, raw: dict[str, Any]) -> None:
        self._db.rows(
            "POST",
            "bot_messages",
            body={"lead_id": lead_id, "direction": direction, "text": text, "raw": raw},
            prefer="return=minimal",
        )

    def try_insert_dedupe(self, message_id: str, lead_id: str) -> bool:
        resp = self._db.request(
            "POST",
            "bot_message_dedupe",
            body={"message_id": message_id, "lead_id": lead_id},
            prefer="resolution=ignore-duplicates,return=representation",
        )
        if resp.status_code == 409:
            return False
        _raise_for_status(resp, "POST", "bot_message_dedupe")
        # An ignored duplicate comes back with an empty representation
        return bool(resp.content) and resp.json() not in ([], None)

    def track_event(self, lead_id: str, event_type: str, data: dict[str, Any] | None = None) -> None:
        try:
            self._db.rows(
                "POST",
                "bot_analytics",
                body={"lead_id": lead_id, "event_type": event_type, "event_data": data or {}},
                prefer="return=minimal",
            )
        except StoreError as e:
            self._logger.warning("Failed to track event", extra={"lead_id": lead_id, "reason": f"{event_type}: {e}"})

    def save_intent(self, lead_id: str, message_text: str, intent: str) -> None:
        self._db.rows(
            "POST",
            "bot_intents",
            body={"lead_id": lead_id, "message_text": message_text, "detected_intent": intent},
            prefer="return=minimal",
        )

    def get_active_addons(self) -> list[ServiceAddon]:
        rows = self._db.rows(
            "GET",
            "add_ons",
            params=[("is_active", "eq.true"), ("select", "*"), ("order", "name.asc")],
        )
        return [ServiceAddon.from_row(row) for row in rows]


class SupabaseConversationStore(ConversationStorePort):
    def __init__(self, client: PostgrestClient) -> None:
        self._db = client

    def get_state(self, lead_id: str) -> ConversationState | None:
        rows = self._db.rows("GET", "bot_convo_state", params=[("lead_id", f"eq.{lead_id}"), ("select", "*")])
        return ConversationState.from_row(rows[0]) if rows else None

    def upsert_state(self, lead_id: str, state: ConversationState) -> None:
        self._db.rows(
            "POST",
            "bot_convo_state",
            params=[("on_conflict", "lead_id")],
            body={"lead_id": lead_id, "step": state.step.value, "context": state.context.to_dict()},
            prefer="resolution=merge-duplicates,return=minimal",
        )


def _filter(condition: Condition) -> tuple[str, str]:
    if condition.op == "is_null":
        return condition.field, "is.null"
    if condition.op == "eq":
        return condition.field, f"eq.{_serialize(condition.value)}"
    raise ValueError(f"Unsupported condition operator: {condition.op}")


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


def _raise_for_status(resp: httpx.Response, method: str, table: str) -> None:
    if resp.status_code >= 400:
        raise StoreError(f"{method} {table} failed: {resp.status_code} {resp.text}")
