"""
Stock value objects and pure helpers.

Frozen dataclasses handed back from the ledger, plus the low-stock rule and
the document total rule.  No I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID


@dataclass(frozen=True)
class VariantStock:
    """Stock level of one variant right after a ledger operation."""
    product_id: UUID
    sku: str
    stock: int
    product_name: str
    low_stock_threshold: int


@dataclass(frozen=True)
class StockMovementRecord:
    """Read-only view of one audit trail row."""
    id: UUID
    tenant_id: UUID
    product_id: UUID
    sku: str
    movement_type: str
    quantity: int
    actor_id: UUID
    reference: str | None
    notes: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class LowStockItem:
    """A variant under its product's alarm level, net of inbound POs."""
    product_id: UUID
    product_name: str
    sku: str
    attributes: dict
    current_stock: int
    pending_po_quantity: int
    threshold: int

    @property
    def effective_stock(self) -> int:
        return self.current_stock + self.pending_po_quantity


def is_low_stock(stock: int, threshold: int, pending_po_quantity: int = 0) -> bool:
    """
    Low-stock rule.

    A variant alarms when its stock is below the threshold AND the quantity
    already in flight on outstanding purchase orders does not lift it back
    to the threshold.
    """
    return stock < threshold and stock + pending_po_quantity < threshold


def document_total(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Σ unit price × quantity over (price, quantity) pairs."""
    total = Decimal("0")
    for price, quantity in lines:
        total += Decimal(price) * quantity
    return total
