from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.slot import BusyBlock, Slot


class CalendarPort(ABC):
    @abstractmethod
    def free_busy(self, start: datetime, end: datetime) -> list[BusyBlock]:
        """Occupied intervals of the configured calendar within [start, end)."""
        raise NotImplementedError

    @abstractmethod
    def create_event(self, slot: Slot, title: str, description: str) -> str:
        """Create calendar event covering the slot. Returns event_id."""
        raise NotImplementedError

    @abstractmethod
    def update_event_description(self, event_id: str, description: str) -> None:
        raise NotImplementedError
