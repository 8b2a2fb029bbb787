"""
Pydantic Schemas for Wire and Local-State Validation

Covers:
- Entities returned by the remote ordering API (tables, products, orders)
- Line items sent when submitting an order
- Records persisted locally per table (session/verification, cart lines)

The server speaks camelCase JSON; every model accepts both the camelCase
alias and the Python field name.

Version: 1.0.0
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model with camelCase aliases."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status values as reported by the server."""
    PENDING = "Pendiente"
    CONFIRMED = "Confirmado"
    REJECTED = "Rechazado"


# =============================================================================
# REMOTE ENTITIES
# =============================================================================

class Table(WireModel):
    """A restaurant table; the open flag is owned by staff."""
    number: int = Field(..., ge=1, examples=[12])
    is_open: bool = Field(default=False)


class Product(WireModel):
    """Menu catalog entry."""
    id: int
    name: str = Field(..., min_length=1, max_length=100, examples=["Milanesa"])
    price: float = Field(..., ge=0, examples=[14.99])
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_deleted: bool = Field(default=False)


class SessionPair(WireModel):
    """Opaque session id and its secret visit token."""
    session_id: str = Field(..., min_length=1)
    visit_token: str = Field(..., min_length=1)


class OrderLineItem(WireModel):
    """Single line of a submitted or fetched order."""
    product_id: int
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)

    @property
    def total_price(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class Order(WireModel):
    """
    Server-owned order as seen by the client.

    Status is kept as the raw server string so that values beyond the
    three known ones pass through untouched.
    """
    id: int
    status: str
    line_items: list[OrderLineItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING.value

    @property
    def total_amount(self) -> float:
        return round(sum(item.quantity * item.unit_price for item in self.line_items), 2)


# =============================================================================
# LOCAL STATE
# =============================================================================

class CartLine(WireModel):
    """A cart entry; price is captured when the product is added."""
    product_id: int
    name: str
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)

    @property
    def subtotal(self) -> float:
        return self.quantity * self.unit_price


class TableRecord(WireModel):
    """
    Everything persisted about one table besides the cart.

    Written and read back as a single value so the session pair and the
    verification flag can never be half-updated relative to each other.
    """
    session_id: Optional[str] = None
    visit_token: Optional[str] = None
    verified: bool = False
    code: Optional[str] = None

    @model_validator(mode="after")
    def check_session_pair(self) -> "TableRecord":
        if bool(self.session_id) != bool(self.visit_token):
            raise ValueError("session_id and visit_token must be stored together")
        return self

    @property
    def has_session(self) -> bool:
        return bool(self.session_id and self.visit_token)

    @property
    def is_empty(self) -> bool:
        return not (self.has_session or self.verified or self.code)
