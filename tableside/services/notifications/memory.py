"""
In-Memory Notification Service

Keeps every notification in order so a UI layer can render the latest one
and tests can assert on exactly what was raised. Also logs each message.

Version: 1.0.0
"""

import logging
from typing import Optional

from tableside.services.notifications.base import (
    BaseNotifier,
    Notification,
    NotificationTone,
)

logger = logging.getLogger(__name__)


class InMemoryNotifier(BaseNotifier):
    """Records notifications in a list."""

    def __init__(self):
        self.notifications: list[Notification] = []

    @property
    def provider_name(self) -> str:
        return "memory"

    def notify(self, message: str, tone: NotificationTone = NotificationTone.SUCCESS) -> Notification:
        notification = Notification(message=message, tone=tone)
        self.notifications.append(notification)
        logger.debug(f"Notification [{tone.value}]: {message}")
        return notification

    @property
    def latest(self) -> Optional[Notification]:
        """The notification currently on screen, if any."""
        return self.notifications[-1] if self.notifications else None

    def clear(self) -> None:
        self.notifications.clear()
