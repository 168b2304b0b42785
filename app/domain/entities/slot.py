from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Slot:
    """An offerable appointment window. Equality is by (start, end) only."""

    start: datetime
    end: datetime
    label: str = field(default="", compare=False)

    def to_dict(self) -> dict[str, str]:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Slot":
        return cls(
            start=parse_instant(str(data["start"])),
            end=parse_instant(str(data["end"])),
            label=str(data.get("label") or ""),
        )


@dataclass(frozen=True)
class BusyBlock:
    start: datetime
    end: datetime


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant, accepting the trailing "Z" that Google and PostgREST emit."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
