from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from app.domain.entities.message import Message


class WebhookEventDTO(BaseModel):
    object: str | None = None
    entry: list[dict[str, Any]] = Field(default_factory=list)

    def extract_messages(self) -> list[Message]:
        messages: list[Message] = []
        for entry in self.entry or []:
            for event in entry.get("messaging", []) or []:
                if event.get("delivery") or event.get("read"):
                    continue
                message = event.get("message") or {}
                if message.get("is_echo"):
                    continue
                sender = (event.get("sender") or {}).get("id")
                if not sender:
                    continue

                text = message.get("text") or None
                attachments = message.get("attachments") or []
                timestamp = int(event.get("timestamp") or 0)
                mid = message.get("mid")

                messages.append(
                    Message(
                        id=str(mid) if mid else fallback_message_id(str(sender), timestamp, text, attachments),
                        sender_id=str(sender),
                        text=str(text) if text else None,
                        timestamp=timestamp,
                        platform="messenger",
                        has_attachments=bool(attachments),
                        raw=event,
                    )
                )

        return messages


def fallback_message_id(psid: str, timestamp: int, text: str | None, attachments: list[dict[str, Any]]) -> str:
    """
    Dedupe key for events that arrive without a mid.

    Built from the stable parts of the event so a redelivery produces the same key.
    """
    key = f"fallback:{psid}:{timestamp}"
    if text:
        return f"{key}:{text}"
    if attachments:
        fingerprint = [_attachment_fingerprint(att) for att in attachments]
        return f"{key}:att:{json.dumps(fingerprint, separators=(',', ':'))[:50]}"
    return f"{key}:no_content"


def _attachment_fingerprint(attachment: dict[str, Any]) -> dict[str, Any]:
    payload = attachment.get("payload") or {}
    return {
        "type": attachment.get("type"),
        "id": payload.get("attachment_id") or payload.get("sticker_id") or "",
        "url": payload.get("url") or payload.get("reusable_url") or "",
        "title": payload.get("title") or "",
    }
