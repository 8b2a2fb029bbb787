"""
Mock Ordering API Implementation

An in-memory restaurant that behaves like the real ordering server.
Used in development mode (ENV_MODE=development) to:
    - Exercise the complete scan / verify / order / track flow locally
    - Drive the client from tests without a server
    - Play the staff side (open tables, confirm or reject orders)

Behavior:
    - Simulates response times (configurable latency window)
    - Randomly raises TransientNetworkError at `failure_rate`
    - Issues uuid-based session ids and visit tokens
    - Refuses orders with SESSION_INVALID / TOKEN_MISMATCH like the server

Version: 1.0.0
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from tableside.core.exceptions import TransientNetworkError
from tableside.schemas import Order, OrderLineItem, OrderStatus, Product, SessionPair, Table
from tableside.services.ordering_api.base import (
    BaseOrderingApi,
    CodeVerification,
    SessionValidation,
    SubmitOrderResult,
)

logger = logging.getLogger(__name__)


@dataclass
class _MockTable:
    number: int
    is_open: bool = False
    code: Optional[str] = None


@dataclass
class _MockSession:
    session_id: str
    visit_token: str
    table_number: int
    active: bool = True


@dataclass
class _MockOrder:
    order: Order
    table_number: int
    session_id: str
    code: Optional[str] = None
    history: list[str] = field(default_factory=list)


class MockOrderingApi(BaseOrderingApi):
    """
    Mock implementation of the remote ordering API.

    Attributes:
        failure_rate: Probability of a simulated transport failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> api = MockOrderingApi(failure_rate=0)
        >>> code = api.open_table(5)
        >>> pair = await api.scan_table(5)
        >>> (await api.verify_table_code(5, code)).valid
        True
    """

    DEMO_MENU = [
        ("Empanada de carne", 2.50, "Entradas"),
        ("Provoleta", 6.90, "Entradas"),
        ("Milanesa napolitana", 14.99, "Platos"),
        ("Bife de chorizo", 21.50, "Platos"),
        ("Ñoquis con tuco", 11.99, "Platos"),
        ("Flan con dulce de leche", 5.49, "Postres"),
        ("Agua mineral", 1.99, "Bebidas"),
        ("Gaseosa", 2.49, "Bebidas"),
    ]

    def __init__(
        self,
        failure_rate: float = 0.05,
        min_latency: float = 0.05,
        max_latency: float = 0.3,
        seed_demo_data: bool = False,
    ):
        """
        Initialize the mock restaurant.

        Args:
            failure_rate: Probability of transport failure per request
            min_latency: Minimum response time in seconds
            max_latency: Maximum response time in seconds
            seed_demo_data: Load a demo menu and ten tables (1-3 open)
        """
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

        self._tables: dict[int, _MockTable] = {}
        self._sessions: dict[str, _MockSession] = {}
        self._products: dict[int, Product] = {}
        self._orders: dict[int, _MockOrder] = {}
        self._next_order_id = 1
        self._forced_failures = 0

        if seed_demo_data:
            self._seed_demo_data()

        logger.info(
            f"MockOrderingApi initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def _seed_demo_data(self) -> None:
        for name, price, category in self.DEMO_MENU:
            self.add_product(name, price, category)
        for number in range(1, 11):
            self.add_table(number)
        for number in (1, 2, 3):
            code = self.open_table(number)
            logger.info(f"Mock: Table {number} open with code {code}")

    # =========================================================================
    # STAFF SIDE (not part of the client contract)
    # =========================================================================

    def add_table(self, number: int, is_open: bool = False, code: Optional[str] = None) -> None:
        """Register a table."""
        self._tables[number] = _MockTable(number=number, is_open=is_open, code=code)

    def open_table(self, number: int, code: Optional[str] = None) -> str:
        """
        Open a table for a new party and issue its verification code.

        Returns:
            str: The code staff hands to the patrons
        """
        table = self._tables.setdefault(number, _MockTable(number=number))
        table.is_open = True
        table.code = code or f"{random.randint(0, 999999):06d}"
        return table.code

    def close_table(self, number: int) -> None:
        """Close a table; every session opened for it stops being valid."""
        table = self._tables.get(number)
        if table is None:
            return
        table.is_open = False
        table.code = None
        for session in self._sessions.values():
            if session.table_number == number:
                session.active = False

    def add_product(
        self,
        name: str,
        price: float,
        category: Optional[str] = None,
        is_deleted: bool = False,
    ) -> Product:
        """Add a product to the menu."""
        product = Product(
            id=len(self._products) + 1,
            name=name,
            price=price,
            category=category,
            is_deleted=is_deleted,
        )
        self._products[product.id] = product
        return product

    def set_order_status(self, order_id: int, status: str) -> None:
        """Staff confirms or rejects an order."""
        entry = self._orders[order_id]
        entry.history.append(entry.order.status)
        entry.order = entry.order.model_copy(update={"status": status})
        logger.info(f"Mock: Order #{order_id} -> {status}")

    def revoke_session(self, session_id: str) -> None:
        """Make the server forget a session."""
        self._sessions.pop(session_id, None)

    def rotate_visit_token(self, session_id: str) -> str:
        """Issue a new visit token for an existing session."""
        session = self._sessions[session_id]
        session.visit_token = uuid.uuid4().hex
        return session.visit_token

    def fail_next_requests(self, count: int = 1) -> None:
        """Force the next `count` requests to fail with a transport error."""
        self._forced_failures = count

    # =========================================================================
    # SIMULATION HELPERS
    # =========================================================================

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        if self._forced_failures > 0:
            self._forced_failures -= 1
            return True
        return random.random() < self.failure_rate

    async def _round_trip(self, operation: str) -> None:
        await self._simulate_latency()
        if self._should_fail():
            logger.warning(f"Mock: {operation} failed (simulated)")
            raise TransientNetworkError(
                "Simulated network failure",
                error_code="NETWORK_ERROR",
                details={"operation": operation},
            )

    # =========================================================================
    # CLIENT CONTRACT
    # =========================================================================

    async def get_table(self, table_number: int) -> Optional[Table]:
        await self._round_trip("get_table")
        table = self._tables.get(table_number)
        if table is None:
            return None
        return Table(number=table.number, is_open=table.is_open)

    async def scan_table(self, table_number: int) -> SessionPair:
        await self._round_trip("scan_table")
        if table_number not in self._tables:
            raise TransientNetworkError(
                f"Table {table_number} not found",
                error_code="TABLE_NOT_FOUND",
            )

        session = _MockSession(
            session_id=f"sess_mock_{uuid.uuid4().hex[:16]}",
            visit_token=uuid.uuid4().hex,
            table_number=table_number,
        )
        self._sessions[session.session_id] = session
        logger.debug(f"Mock: Session {session.session_id} opened for table {table_number}")
        return SessionPair(session_id=session.session_id, visit_token=session.visit_token)

    async def validate_session(
        self,
        session_id: str,
        visit_token: str,
    ) -> SessionValidation:
        await self._round_trip("validate_session")
        session = self._sessions.get(session_id)
        if session is None or not session.active or session.visit_token != visit_token:
            return SessionValidation(valid=False)
        return SessionValidation(valid=True, visit_token=session.visit_token)

    async def verify_table_code(
        self,
        table_number: int,
        code: str,
    ) -> CodeVerification:
        await self._round_trip("verify_table_code")
        table = self._tables.get(table_number)
        if table is None:
            return CodeVerification(valid=False, message="Table not found")
        if not table.is_open:
            return CodeVerification(valid=False, message="This table is closed")
        if table.code != code.strip():
            return CodeVerification(valid=False, message="Incorrect code")
        return CodeVerification(valid=True)

    async def list_products(self) -> list[Product]:
        await self._round_trip("list_products")
        return [p.model_copy() for p in self._products.values()]

    async def list_orders(
        self,
        table_number: int,
        code: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> list[Order]:
        await self._round_trip("list_orders")
        if session_id:
            entries = [e for e in self._orders.values() if e.session_id == session_id]
        else:
            table = self._tables.get(table_number)
            if table is None or not code or table.code != code:
                return []
            entries = [
                e for e in self._orders.values()
                if e.table_number == table_number and e.code == code
            ]
        return [e.order.model_copy(deep=True) for e in entries]

    async def submit_order(
        self,
        table_number: int,
        line_items: list[OrderLineItem],
        session_id: str,
        visit_token: str,
    ) -> SubmitOrderResult:
        await self._round_trip("submit_order")

        session = self._sessions.get(session_id)
        if session is None or not session.active or session.table_number != table_number:
            return SubmitOrderResult(
                success=False,
                error_code="SESSION_INVALID",
                message="Sesión inválida",
            )
        if session.visit_token != visit_token:
            return SubmitOrderResult(
                success=False,
                error_code="TOKEN_MISMATCH",
                message="Visit token does not match the session",
            )

        table = self._tables[table_number]
        if not table.is_open:
            return SubmitOrderResult(
                success=False,
                error_code="TABLE_CLOSED",
                message="This table is closed",
            )
        if not line_items:
            return SubmitOrderResult(
                success=False,
                error_code="EMPTY_ORDER",
                message="The order has no items",
            )
        for item in line_items:
            product = self._products.get(item.product_id)
            if product is None or product.is_deleted:
                return SubmitOrderResult(
                    success=False,
                    error_code="PRODUCT_UNAVAILABLE",
                    message=f"Product {item.product_id} is no longer available",
                )

        order = Order(
            id=self._next_order_id,
            status=OrderStatus.PENDING.value,
            line_items=[item.model_copy() for item in line_items],
            created_at=datetime.now(timezone.utc),
        )
        self._next_order_id += 1
        self._orders[order.id] = _MockOrder(
            order=order,
            table_number=table_number,
            session_id=session_id,
            code=table.code,
        )

        logger.info(f"Mock: Order #{order.id} received for table {table_number} - ${order.total_amount:.2f}")
        return SubmitOrderResult(success=True, order_id=order.id)

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
