from __future__ import annotations

import logging

from app.application.ports.notifier import BookingNotification, NotificationPort


class LoggingNotifier(NotificationPort):
    def __init__(self) -> None:
        self.sent: list[BookingNotification] = []
        self._logger = logging.getLogger(__name__)

    def notify_booking(self, notification: BookingNotification) -> None:
        self.sent.append(notification)
        self._logger.info(
            "New booking",
            extra={"slot": notification.slot_label, "event_id": notification.event_id},
        )
