from __future__ import annotations

import logging

from app.application.ports.message_platform import MessagePlatformPort


class MockMessengerPlatform(MessagePlatformPort):
    """Records outgoing messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self._logger = logging.getLogger(__name__)

    def send_text(self, recipient_id: str, text: str) -> None:
        self.sent.append((recipient_id, text))
        self._logger.info("Mock send to Messenger", extra={"recipient_id": recipient_id, "reply_text": text})
