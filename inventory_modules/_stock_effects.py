"""
Shared helpers for module stock flows.

Used by inventory_modules/*/service.py so that every stock change goes
through the same two steps -- one ledger call, one movement -- and queues the
same post-commit events.

Architecture: Modules layer.  Imports from inventory_kernel; the purchasing
ORM is imported lazily since purchasing.service imports this module.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import StockMovementRecord, VariantStock, is_low_stock
from inventory_kernel.exceptions import (
    DuplicateLineItemError,
    InvalidPriceError,
    ProductNotFoundError,
)
from inventory_kernel.models.stock_movement import MovementType
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.notifications import InventoryEvent, PendingEffects
from inventory_kernel.services.stock_ledger import StockLedger


# Prices and totals are stored as Numeric(18, 4).
PRICE_QUANTUM = Decimal("0.0001")
MAX_PRICE = Decimal("1e14")


def parse_price(value: Any) -> Decimal:
    """Coerce a caller-supplied price to a finite, non-negative Decimal.

    A price finer than ``PRICE_QUANTUM`` is rejected, never rounded: stored
    line prices must add up to the stored document total.
    """
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidPriceError(value, "must be a decimal amount") from None
    if not price.is_finite() or price < 0:
        raise InvalidPriceError(value)
    if price >= MAX_PRICE:
        raise InvalidPriceError(value, f"must be below {MAX_PRICE:f}")
    if price.quantize(PRICE_QUANTUM) != price:
        raise InvalidPriceError(value, f"must not be finer than {PRICE_QUANTUM}")
    return price


def parse_product_id(value: Any) -> UUID:
    """Accept a UUID or its string form; anything else names no product."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ProductNotFoundError(str(value)) from None


def require_distinct_lines(document: str, keys: Iterable[tuple[UUID, str]]) -> None:
    """Each (product, sku) may appear on one line only."""
    seen: set[tuple[UUID, str]] = set()
    for product_id, sku in keys:
        if (product_id, sku) in seen:
            raise DuplicateLineItemError(document, str(product_id), sku)
        seen.add((product_id, sku))


def apply_stock_change(
    session: Session,
    *,
    tenant_id: UUID,
    actor_id: UUID,
    product_id: UUID,
    sku: str,
    movement_type: MovementType,
    quantity: int,
    reference: str | None,
    notes: str | None = None,
) -> tuple[VariantStock, StockMovementRecord]:
    """Move stock by a signed ``quantity`` and record the movement.

    Negative quantities go through ``reserve`` (floor-checked), positive ones
    through ``release``.
    """
    ledger = StockLedger(session)
    if quantity < 0:
        stock = ledger.reserve(product_id, sku, tenant_id, -quantity)
    else:
        stock = ledger.release(product_id, sku, tenant_id, quantity)

    movement = MovementRecorder(session).record(
        tenant_id=tenant_id,
        product_id=product_id,
        sku=sku,
        movement_type=movement_type,
        quantity=quantity,
        actor_id=actor_id,
        reference=reference,
        notes=notes,
    )
    return stock, movement


def pending_po_quantity(
    session: Session,
    tenant_id: UUID,
    product_id: UUID,
    sku: str,
) -> int:
    """Quantity still due on SENT / CONFIRMED purchase orders for one variant."""
    from inventory_modules.purchasing.models import OUTSTANDING_STATUSES
    from inventory_modules.purchasing.orm import PurchaseOrderLineModel, PurchaseOrderModel

    remaining = PurchaseOrderLineModel.ordered_quantity - PurchaseOrderLineModel.received_quantity
    total = session.execute(
        select(func.coalesce(func.sum(remaining), 0))
        .select_from(PurchaseOrderLineModel)
        .join(PurchaseOrderModel, PurchaseOrderLineModel.purchase_order_id == PurchaseOrderModel.id)
        .where(
            PurchaseOrderModel.tenant_id == tenant_id,
            PurchaseOrderModel.status.in_([s.value for s in OUTSTANDING_STATUSES]),
            PurchaseOrderLineModel.product_id == product_id,
            PurchaseOrderLineModel.variant_sku == sku,
        )
    ).scalar_one()
    return int(total)


def queue_stock_events(
    effects: PendingEffects,
    session: Session,
    stock: VariantStock,
    movement: StockMovementRecord,
    clock: Clock,
    check_low_stock: bool = True,
) -> None:
    """Queue ``stock_movement`` and, when the variant alarms, ``low_stock``."""
    effects.emit(
        InventoryEvent.STOCK_MOVEMENT,
        {
            "product_id": str(stock.product_id),
            "product_name": stock.product_name,
            "variant_sku": stock.sku,
            "quantity": movement.quantity,
            "type": movement.movement_type,
            "reference": movement.reference,
            "timestamp": clock.now().isoformat(),
        },
    )
    if not check_low_stock:
        return

    pending = pending_po_quantity(session, effects.tenant_id, stock.product_id, stock.sku)
    if is_low_stock(stock.stock, stock.low_stock_threshold, pending):
        effects.emit(
            InventoryEvent.LOW_STOCK,
            {
                "product_id": str(stock.product_id),
                "product_name": stock.product_name,
                "variant_sku": stock.sku,
                "current_stock": stock.stock,
                "pending_po_quantity": pending,
                "threshold": stock.low_stock_threshold,
            },
        )
