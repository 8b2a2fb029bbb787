"""
Notification Service Factory

Returns the in-memory or logging notifier based on ENV_MODE.

Version: 1.0.0
"""

import logging
from functools import lru_cache

from tableside.core.config import get_settings
from tableside.services.notifications.base import (
    BaseNotifier,
    Notification,
    NotificationTone,
)
from tableside.services.notifications.logging_notifier import LoggingNotifier
from tableside.services.notifications.memory import InMemoryNotifier

logger = logging.getLogger(__name__)


@lru_cache()
def get_notifier() -> BaseNotifier:
    """Get the configured notifier."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Service: Using InMemoryNotifier (development mode)")
        return InMemoryNotifier()
    else:
        logger.info(f"Notification Service: Using LoggingNotifier ({settings.env_mode.value} mode)")
        return LoggingNotifier()


def reset_notifier() -> None:
    """Clear the cached notifier instance."""
    get_notifier.cache_clear()


__all__ = [
    "get_notifier",
    "reset_notifier",
    "BaseNotifier",
    "Notification",
    "NotificationTone",
    "InMemoryNotifier",
    "LoggingNotifier",
]
