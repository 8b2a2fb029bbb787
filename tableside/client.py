"""
Table Ordering Client

View-level facade for one table: wires the cart, session manager,
verification gate, submission pipeline and order status synchronizer
together the way the ordering screen uses them.

Lifecycle:
    open()    read the table, apply stored verification, and if verified
              establish the session, load the menu and start tracking
    verify()  check the staff code, then do the same
    exit()    forget everything stored for the table
    close()   view teardown; stops polling but keeps stored state

Usage:
    async with TableOrderingClient(12) as client:
        if not client.gate.is_verified:
            await client.verify("482913")
        client.cart.add_item(client.products[0])
        await client.submit_order()

Version: 1.0.0
"""

import logging
from typing import Optional

from tableside.cart import CartStore
from tableside.core.exceptions import ValidationError
from tableside.persistence import BaseStateStore, JsonFileStateStore, TableStateRepository
from tableside.schemas import Order, Product, Table
from tableside.services.notifications import BaseNotifier, get_notifier
from tableside.services.ordering_api import BaseOrderingApi, SubmitOrderResult, get_ordering_api
from tableside.session import SessionManager, TableSession
from tableside.submission import OrderSubmissionPipeline
from tableside.synchronizer import OrderStatusSynchronizer
from tableside.verification import VerificationGate, VerificationStatus

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"


def group_by_category(products: list[Product]) -> dict[str, list[Product]]:
    """Group products by category, keeping catalog order; blank goes to "Other"."""
    grouped: dict[str, list[Product]] = {}
    for product in products:
        key = (product.category or "").strip() or DEFAULT_CATEGORY
        grouped.setdefault(key, []).append(product)
    return grouped


class TableOrderingClient:
    """Everything the ordering screen needs for one table."""

    def __init__(
        self,
        table_number: int,
        api: Optional[BaseOrderingApi] = None,
        store: Optional[BaseStateStore] = None,
        notifier: Optional[BaseNotifier] = None,
        poll_interval: Optional[float] = None,
    ):
        if table_number <= 0:
            raise ValidationError("Invalid table number", error_code="INVALID_TABLE")

        self.table_number = table_number
        self.api = api or get_ordering_api()
        self.store = store or JsonFileStateStore()
        self.notifier = notifier or get_notifier()

        self.state = TableStateRepository(self.store, table_number)
        self.cart = CartStore(self.state)
        self.sessions = SessionManager(self.api, self.store)
        self.gate = VerificationGate(self.api, self.state)
        self.synchronizer = OrderStatusSynchronizer(
            self.api,
            self.gate,
            self.sessions,
            self.notifier,
            interval=poll_interval,
        )
        self.pipeline = OrderSubmissionPipeline(
            self.api,
            self.sessions,
            self.gate,
            self.cart,
            self.notifier,
        )
        self.pipeline.on_submitted(self._after_submit)

        self.table: Optional[Table] = None
        self.products: list[Product] = []
        self.menu: dict[str, list[Product]] = {}
        self.is_cart_open = False

    async def __aenter__(self) -> "TableOrderingClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def session(self) -> Optional[TableSession]:
        return self.sessions.current(self.table_number)

    @property
    def orders(self) -> list[Order]:
        return self.synchronizer.orders

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> VerificationStatus:
        """
        Load the table and resume a verified visit if one is stored.

        Raises:
            ValidationError: No table with this number exists.
            TransientNetworkError: The server could not be reached.
        """
        table = await self.api.get_table(self.table_number)
        if table is None:
            raise ValidationError("Table not found", error_code="TABLE_NOT_FOUND")

        self.table = table
        status = self.gate.load(table)
        if self.gate.is_verified:
            await self._enter_verified()
        return status

    async def verify(self, code: str) -> VerificationStatus:
        """Check the staff code and, once accepted, start the visit."""
        status = await self.gate.verify(code)
        await self._enter_verified()
        return status

    async def _enter_verified(self) -> None:
        await self.sessions.establish(self.table_number)
        await self.load_menu()
        await self.synchronizer.refresh()
        self.synchronizer.start()

    async def close(self) -> None:
        """View teardown: stop polling, keep everything stored."""
        await self.synchronizer.close()

    async def exit(self) -> None:
        """Leave the table: stop polling and purge all state for it."""
        self.synchronizer.reset()
        self.state.purge_record()
        self.sessions.invalidate(self.table_number)
        self.gate.downgrade()
        self.cart.clear()
        self.products = []
        self.menu = {}
        self.is_cart_open = False
        logger.info(f"Left table {self.table_number}")

    # =========================================================================
    # MENU / CART PANEL
    # =========================================================================

    async def load_menu(self) -> dict[str, list[Product]]:
        """Fetch the catalog, hide deleted products and group by category."""
        products = await self.api.list_products()
        self.products = [p for p in products if not p.is_deleted]
        self.menu = group_by_category(self.products)
        logger.debug(f"Menu loaded: {len(self.products)} products in {len(self.menu)} categories")
        return self.menu

    def open_cart(self) -> None:
        self.is_cart_open = True

    def close_cart(self) -> None:
        self.is_cart_open = False

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def submit_order(self) -> SubmitOrderResult:
        """Send the cart; see OrderSubmissionPipeline.submit for outcomes."""
        return await self.pipeline.submit()

    async def refresh_orders(self) -> list[Order]:
        """Explicit user retry of the order list."""
        await self.synchronizer.refresh()
        return self.orders

    async def _after_submit(self, result: SubmitOrderResult) -> None:
        self.close_cart()
        await self.synchronizer.refresh()
