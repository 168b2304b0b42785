from __future__ import annotations

import logging
import threading
from datetime import datetime

from app.application.ports.calendar import CalendarPort
from app.domain.entities.slot import BusyBlock, Slot


class MockCalendar(CalendarPort):
    """
    In-memory calendar for dev and tests.

    Created events count as busy time, so a slot booked here stops being
    offered. `busy` seeds extra occupied blocks.
    """

    def __init__(self, busy: list[BusyBlock] | None = None) -> None:
        self._busy: list[BusyBlock] = list(busy or [])
        self._events: dict[str, tuple[Slot, str, str]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)
        self.free_busy_calls = 0

    @property
    def events(self) -> dict[str, tuple[Slot, str, str]]:
        return dict(self._events)

    def add_busy(self, start: datetime, end: datetime) -> None:
        with self._lock:
            self._busy.append(BusyBlock(start=start, end=end))

    def free_busy(self, start: datetime, end: datetime) -> list[BusyBlock]:
        with self._lock:
            self.free_busy_calls += 1
            blocks = self._busy + [BusyBlock(slot.start, slot.end) for slot, _, _ in self._events.values()]
        return [b for b in blocks if b.start < end and b.end > start]

    def create_event(self, slot: Slot, title: str, description: str) -> str:
        with self._lock:
            event_id = f"mock_event_{len(self._events) + 1}"
            self._events[event_id] = (slot, title, description)
        self._logger.info(
            "Mock calendar event created",
            extra={"event_id": event_id, "slot": slot.label},
        )
        return event_id

    def update_event_description(self, event_id: str, description: str) -> None:
        with self._lock:
            slot, title, _ = self._events[event_id]
            self._events[event_id] = (slot, title, description)
