"""
StockLedger -- atomic per-variant stock counters.

Responsibility:
    The only writer of ``product_variants.stock``.  Exposes a floor-checked
    decrement (``reserve``) and an unbounded increment (``release``), each
    expressed as ONE conditional UPDATE statement.

Architecture position:
    Kernel > Services.  Called by the order, purchasing and stock modules
    inside a TransactionCoordinator unit of work.

Invariants enforced:
    - stock >= 0 at all times.  ``reserve`` issues
          UPDATE product_variants SET stock = stock - :q
           WHERE product_id = :p AND sku = :s AND tenant_id = :t
             AND stock >= :q
       RETURNING stock
      so the check and the write are a single compare-and-swap at the
      storage layer.  Two concurrent reservations against the same variant
      serialize on the row; the second sees the first's result and fails
      its predicate if the combined quantity exceeds stock.
    - Reading the variant, changing ``stock`` in Python and flushing it back
      is FORBIDDEN here: it loses updates under concurrency.
    - Every statement filters on tenant_id.

Failure modes:
    - InvalidQuantityError: quantity is not a positive integer.
    - VariantNotFoundError: no such variant for this tenant.
    - InsufficientStockError: predicate failed (carries the stock seen by a
      follow-up read, for the error message only).

Audit relevance:
    The ledger does not write movements.  Callers record exactly one
    StockMovement per successful ledger call, in the same unit of work.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from inventory_kernel.domain.values import VariantStock
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    VariantNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.product import Product, ProductVariant

logger = get_logger("services.stock_ledger")


def require_positive_quantity(quantity, field: str = "quantity") -> int:
    """Reject zero, negative, fractional and boolean quantities."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity, field)
    return quantity


class StockLedger:
    """
    Atomic stock increment / decrement-with-floor.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT record movements or notify anyone.
    """

    def __init__(self, session: Session):
        self._session = session

    def reserve(
        self,
        product_id: UUID,
        sku: str,
        tenant_id: UUID,
        quantity: int,
    ) -> VariantStock:
        """
        Decrement stock by ``quantity`` only if at least that much is on hand.

        Returns:
            VariantStock with the stock level after the decrement.

        Raises:
            InvalidQuantityError, VariantNotFoundError, InsufficientStockError.
        """
        require_positive_quantity(quantity)

        remaining = self._session.execute(
            update(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.sku == sku,
                ProductVariant.tenant_id == tenant_id,
                ProductVariant.stock >= quantity,
            )
            .values(stock=ProductVariant.stock - quantity)
            .returning(ProductVariant.stock)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if remaining is None:
            available = self._read_stock(product_id, sku, tenant_id)
            if available is None:
                raise VariantNotFoundError(str(product_id), sku)
            logger.info(
                "stock_reservation_rejected",
                extra={
                    "product_id": str(product_id),
                    "sku": sku,
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(str(product_id), sku, quantity, available)

        logger.debug(
            "stock_reserved",
            extra={
                "product_id": str(product_id),
                "sku": sku,
                "quantity": quantity,
                "stock": remaining,
            },
        )
        return self._snapshot(product_id, sku, tenant_id, remaining)

    def release(
        self,
        product_id: UUID,
        sku: str,
        tenant_id: UUID,
        quantity: int,
    ) -> VariantStock:
        """
        Increment stock by ``quantity``.

        No upper bound: a release always mirrors an earlier reservation or a
        physical receipt.

        Raises:
            InvalidQuantityError, VariantNotFoundError.
        """
        require_positive_quantity(quantity)

        new_stock = self._session.execute(
            update(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.sku == sku,
                ProductVariant.tenant_id == tenant_id,
            )
            .values(stock=ProductVariant.stock + quantity)
            .returning(ProductVariant.stock)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if new_stock is None:
            raise VariantNotFoundError(str(product_id), sku)

        logger.debug(
            "stock_released",
            extra={
                "product_id": str(product_id),
                "sku": sku,
                "quantity": quantity,
                "stock": new_stock,
            },
        )
        return self._snapshot(product_id, sku, tenant_id, new_stock)

    def get_variant_stock(
        self,
        product_id: UUID,
        sku: str,
        tenant_id: UUID,
    ) -> VariantStock:
        """Read-only lookup of a variant's current stock."""
        stock = self._read_stock(product_id, sku, tenant_id)
        if stock is None:
            raise VariantNotFoundError(str(product_id), sku)
        return self._snapshot(product_id, sku, tenant_id, stock)

    def _read_stock(self, product_id: UUID, sku: str, tenant_id: UUID) -> int | None:
        return self._session.execute(
            select(ProductVariant.stock).where(
                ProductVariant.product_id == product_id,
                ProductVariant.sku == sku,
                ProductVariant.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()

    def _snapshot(
        self,
        product_id: UUID,
        sku: str,
        tenant_id: UUID,
        stock: int,
    ) -> VariantStock:
        row = self._session.execute(
            select(Product.name, Product.low_stock_threshold).where(
                Product.id == product_id,
                Product.tenant_id == tenant_id,
            )
        ).one()
        return VariantStock(
            product_id=product_id,
            sku=sku,
            stock=stock,
            product_name=row.name,
            low_stock_threshold=row.low_stock_threshold,
        )
