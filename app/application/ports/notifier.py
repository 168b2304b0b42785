from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class BookingNotification:
    slot_label: str
    address: str
    phone: str
    psid: str
    event_id: str


class NotificationPort(ABC):
    @abstractmethod
    def notify_booking(self, notification: BookingNotification) -> None:
        """Fire-and-forget. Implementations must not raise."""
        raise NotImplementedError
