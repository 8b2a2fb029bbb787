"""
Logging Notification Service

Writes notifications to the application log. Used when the client runs
headless (kiosk bridges, smoke runs against a real server).
"""

import logging

from tableside.services.notifications.base import (
    BaseNotifier,
    Notification,
    NotificationTone,
)

logger = logging.getLogger(__name__)

_LEVELS = {
    NotificationTone.SUCCESS: logging.INFO,
    NotificationTone.INFO: logging.INFO,
    NotificationTone.ERROR: logging.WARNING,
}


class LoggingNotifier(BaseNotifier):

    def __init__(self, name: str = "tableside.notifications"):
        self._logger = logging.getLogger(name)

    @property
    def provider_name(self) -> str:
        return "logging"

    def notify(self, message: str, tone: NotificationTone = NotificationTone.SUCCESS) -> Notification:
        notification = Notification(message=message, tone=tone)
        for line in message.splitlines() or [""]:
            self._logger.log(_LEVELS[tone], f"[{tone.value}] {line}")
        return notification
