"""
Remote Ordering API Abstract Base Class

Defines the interface contract for the restaurant server as consumed by
the client. Both MockOrderingApi and HttpOrderingApi implement these
methods, so the session, verification, submission and polling code work
identically regardless of which one is active.

Design Pattern: Strategy Pattern
    - Runtime switching between the mock restaurant and the real server
    - Tests drive the full client against the in-memory mock

Failure contract:
    - Transport problems (timeouts, connection errors, 5xx) raise
      TransientNetworkError
    - Negative answers (invalid session, wrong code, refused order) are
      returned as results, never raised

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from tableside.schemas import Order, OrderLineItem, Product, SessionPair, Table


# Server error codes that mean the session / visit token pair is dead
SESSION_ERROR_CODES = ("SESSION_INVALID", "TOKEN_MISMATCH")


@dataclass
class SessionValidation:
    """
    Result of asking the server whether a session pair is still accepted.

    Attributes:
        valid: Whether the pair is accepted
        visit_token: Rotated token, if the server issued a new one
    """
    valid: bool
    visit_token: Optional[str] = None


@dataclass
class CodeVerification:
    """
    Result of checking a staff verification code.

    Attributes:
        valid: Whether the code matches the table's current opening
        message: Server explanation when the code is rejected
    """
    valid: bool
    message: Optional[str] = None


@dataclass
class SubmitOrderResult:
    """
    Standardized result from submitting an order.

    Attributes:
        success: Whether the server accepted the order
        order_id: Identifier of the created order
        error_code: Machine-readable refusal reason (e.g. "TOKEN_MISMATCH")
        message: Human-readable refusal reason
    """
    success: bool
    order_id: Optional[int] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_session_error(self) -> bool:
        """Whether the refusal means the session pair is no longer valid."""
        if self.success:
            return False
        if self.error_code in SESSION_ERROR_CODES:
            return True
        text = self.message or ""
        return any(code in text for code in SESSION_ERROR_CODES) or "Sesión inválida" in text

    def to_dict(self) -> dict:
        """Convert to dictionary for logging / JSON serialization."""
        return {
            "success": self.success,
            "order_id": self.order_id,
            "error_code": self.error_code,
            "message": self.message,
        }


class BaseOrderingApi(ABC):
    """
    Abstract base class for the remote ordering API.

    Example:
        >>> api = get_ordering_api()  # Returns Mock or HTTP
        >>> pair = await api.scan_table(12)
        >>> orders = await api.list_orders(12, session_id=pair.session_id)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g. "mock", "http")."""
        pass

    @abstractmethod
    async def get_table(self, table_number: int) -> Optional[Table]:
        """
        Look up a table.

        Returns:
            Table, or None if no table has that number
        """
        pass

    @abstractmethod
    async def scan_table(self, table_number: int) -> SessionPair:
        """Open a fresh anonymous session for the table."""
        pass

    @abstractmethod
    async def validate_session(
        self,
        session_id: str,
        visit_token: str,
    ) -> SessionValidation:
        """Check whether a session pair is still accepted."""
        pass

    @abstractmethod
    async def verify_table_code(
        self,
        table_number: int,
        code: str,
    ) -> CodeVerification:
        """Check a staff-issued verification code."""
        pass

    @abstractmethod
    async def list_products(self) -> list[Product]:
        """Return the full menu catalog, deleted products included."""
        pass

    @abstractmethod
    async def list_orders(
        self,
        table_number: int,
        code: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> list[Order]:
        """
        Return every order for the session.

        Args:
            table_number: Table the orders belong to
            code: Verification code (used when no session id is given)
            session_id: Session the orders were submitted under
        """
        pass

    @abstractmethod
    async def submit_order(
        self,
        table_number: int,
        line_items: list[OrderLineItem],
        session_id: str,
        visit_token: str,
    ) -> SubmitOrderResult:
        """Submit an anonymous order for the table."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the ordering server.

        Returns:
            bool: True if the server is reachable
        """
        pass

    async def aclose(self) -> None:
        """Release network resources. Nothing to release by default."""
        return None
