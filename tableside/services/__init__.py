"""
                        Services Module

External collaborators of the ordering client, following the hybrid
architecture pattern: each service has a Mock/in-memory implementation
for development and a real one for production.

Services:
    - ordering_api: Remote restaurant ordering server
    - notifications: Patron-facing messages ("toasts")
"""

from tableside.services.notifications import get_notifier
from tableside.services.ordering_api import get_ordering_api

__all__ = ["get_notifier", "get_ordering_api"]
