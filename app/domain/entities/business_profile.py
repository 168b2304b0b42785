from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ServiceAddon:
    addon_key: str
    name: str
    price_cents: int

    @property
    def price_display(self) -> str:
        return f"${self.price_cents / 100:.0f}"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ServiceAddon":
        return cls(
            addon_key=str(row.get("addon_key") or ""),
            name=str(row.get("name") or ""),
            price_cents=int(row.get("price_cents") or 0),
        )


@dataclass(frozen=True)
class BusinessProfile:
    """Facts the bot is allowed to state about the business."""

    service_name: str
    service_price: str
    service_area: str
    service_duration: str
    service_included: str
