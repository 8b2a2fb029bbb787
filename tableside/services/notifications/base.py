"""
Notification Service Abstract Base Class

Defines the interface for surfacing short messages ("toasts") to the
patron: order sent, session expired, order confirmed or rejected.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class NotificationTone(str, Enum):
    """Visual tone of a notification."""
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notification:
    """A single message raised to the UI."""
    message: str
    tone: NotificationTone = NotificationTone.SUCCESS
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BaseNotifier(ABC):
    """Abstract base class for notification sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def notify(self, message: str, tone: NotificationTone = NotificationTone.SUCCESS) -> Notification:
        """Raise a notification and return it."""
        pass
