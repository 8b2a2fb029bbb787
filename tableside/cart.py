"""
Cart Store

Table-scoped set of selected products with quantities. Lines are keyed by
product id so adding the same product again increments the existing line.
Unit prices are captured when a product is added and never re-fetched.

Every mutation is written to local state immediately. The store assumes a
single browsing context per table; two contexts editing the same table
will overwrite each other's cart.
"""

import logging
from typing import Optional

from tableside.core.exceptions import ValidationError
from tableside.persistence import TableStateRepository
from tableside.schemas import CartLine, OrderLineItem, Product

logger = logging.getLogger(__name__)


class CartStore:
    """Cart for one table, backed by a TableStateRepository."""

    def __init__(self, state: TableStateRepository):
        self._state = state
        self._lines: dict[int, CartLine] = {}
        for line in state.load_cart():
            # A duplicated id in persisted data collapses into one line
            existing = self._lines.get(line.product_id)
            if existing:
                existing.quantity += line.quantity
            else:
                self._lines[line.product_id] = line

    @property
    def items(self) -> list[CartLine]:
        """Lines in the order products were first added."""
        return [line.model_copy() for line in self._lines.values()]

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, product_id: int) -> Optional[CartLine]:
        line = self._lines.get(product_id)
        return line.model_copy() if line else None

    def _persist(self) -> None:
        self._state.save_cart(self._lines.values())

    def add_item(self, product: Product, quantity: int = 1) -> CartLine:
        """Add `quantity` of a product, merging with an existing line."""
        if quantity < 1:
            raise ValidationError(
                "Quantity must be at least 1",
                error_code="INVALID_QUANTITY",
                details={"product_id": product.id, "quantity": quantity},
            )

        line = self._lines.get(product.id)
        if line:
            line.quantity += quantity
        else:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                quantity=quantity,
            )
            self._lines[product.id] = line

        self._persist()
        logger.debug(f"Cart table {self._state.table_number}: {line.name} x{line.quantity}")
        return line.model_copy()

    def remove_item(self, product_id: int) -> None:
        if self._lines.pop(product_id, None) is not None:
            self._persist()

    def update_quantity(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(product_id)
            return

        line = self._lines.get(product_id)
        if line is None:
            return
        line.quantity = quantity
        self._persist()

    def clear(self) -> None:
        self._lines.clear()
        self._persist()

    def get_total_items(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get_total_price(self) -> float:
        return round(sum(line.subtotal for line in self._lines.values()), 2)

    def to_line_items(self) -> list[OrderLineItem]:
        """Snapshot of the cart as order line items."""
        return [
            OrderLineItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in self._lines.values()
        ]
