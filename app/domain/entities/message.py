from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Message:
    id: str  # platform mid, or a synthesized fingerprint when the platform sent none
    sender_id: str
    text: str | None
    timestamp: int
    platform: str
    has_attachments: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False)
