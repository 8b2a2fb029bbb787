"""
Client Error Taxonomy

Every failure in the ordering client maps onto one of four recoverable
categories. None of them is fatal: each has a route back to
"scan / verify again".

    - TransientNetworkError: retried on the next poll or by the user
    - SessionInvalid: session and verification must be re-established
    - ValidationError: bad input or unmet precondition, nothing mutated
    - ServerRejection: the server refused the order, cart kept intact
"""

from typing import Any, Optional


class TablesideError(Exception):
    """Base class for all ordering client errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class TransientNetworkError(TablesideError):
    """Request timed out, could not connect, or the server failed (5xx)."""
    pass


class SessionInvalid(TablesideError):
    """The server no longer accepts the session id / visit token pair."""
    pass


class ValidationError(TablesideError):
    """Input rejected locally before any state was touched."""
    pass


class ServerRejection(TablesideError):
    """The server refused the order for a domain reason."""
    pass


__all__ = [
    "TablesideError",
    "TransientNetworkError",
    "SessionInvalid",
    "ValidationError",
    "ServerRejection",
]
