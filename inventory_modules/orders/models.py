"""
Order Domain Models.

The nouns of sales orders: order lines, fulfillment requests, order views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID


class OrderStatus(str, Enum):
    """Sales order lifecycle states."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class OrderItemRequest:
    """One line requested on a new order; ``price`` is the unit price snapshot."""
    product_id: UUID
    sku: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class FulfillmentRequest:
    """Delivery progress for one order line."""
    sku: str
    quantity: int
    product_id: UUID | None = None


@dataclass(frozen=True)
class OrderLine:
    id: UUID
    product_id: UUID
    sku: str
    quantity: int
    fulfilled_quantity: int
    price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.fulfilled_quantity

    @property
    def is_fully_fulfilled(self) -> bool:
        return self.fulfilled_quantity == self.quantity


@dataclass(frozen=True)
class OrderView:
    """A sales order as returned to callers."""
    id: UUID
    tenant_id: UUID
    order_number: str
    status: OrderStatus
    total_amount: Decimal
    customer_name: str | None = None
    customer_email: str | None = None
    notes: str | None = None
    created_by_id: UUID | None = None
    version: int = 1
    lines: tuple[OrderLine, ...] = field(default_factory=tuple)

    @property
    def is_fully_fulfilled(self) -> bool:
        return all(line.is_fully_fulfilled for line in self.lines)

    def line(self, sku: str) -> OrderLine | None:
        for line in self.lines:
            if line.sku == sku:
                return line
        return None
