"""
Purchasing Domain Models.

The nouns of purchasing: suppliers, purchase orders, receipts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class POStatus(str, Enum):
    """Purchase order lifecycle states."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    CONFIRMED = "CONFIRMED"
    RECEIVED = "RECEIVED"


# Statuses whose remaining quantity counts as inbound replenishment
OUTSTANDING_STATUSES = (POStatus.SENT, POStatus.CONFIRMED)


@dataclass(frozen=True)
class PurchaseOrderItemRequest:
    """One line requested on a new purchase order."""
    product_id: UUID
    sku: str
    ordered_quantity: int
    price: Decimal


@dataclass(frozen=True)
class ReceivedItem:
    """One receipt entry; ``price`` is the actual unit cost when it differs."""
    product_id: UUID
    sku: str
    quantity: int
    price: Decimal | None = None


@dataclass(frozen=True)
class Supplier:
    id: UUID
    tenant_id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    payment_terms: str | None = None
    rating: int | None = None


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line item on a purchase order."""
    id: UUID
    product_id: UUID
    sku: str
    ordered_quantity: int
    received_quantity: int
    price: Decimal

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.received_quantity

    @property
    def is_fully_received(self) -> bool:
        return self.received_quantity == self.ordered_quantity


@dataclass(frozen=True)
class PurchaseOrderView:
    """A purchase order as returned to callers."""
    id: UUID
    tenant_id: UUID
    po_number: str
    supplier_id: UUID
    status: POStatus
    total_amount: Decimal
    expected_delivery_date: date | None = None
    actual_delivery_date: datetime | None = None
    notes: str | None = None
    created_by_id: UUID | None = None
    version: int = 1
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)

    @property
    def is_fully_received(self) -> bool:
        return all(line.is_fully_received for line in self.lines)

    def line(self, product_id: UUID, sku: str) -> PurchaseOrderLine | None:
        for line in self.lines:
            if line.product_id == product_id and line.sku == sku:
                return line
        return None
