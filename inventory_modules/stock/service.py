"""
Stock Module Service (``inventory_modules.stock.service``).

Responsibility
--------------
Catalogue registration, manual stock adjustments, stock lookups, the
low-stock report and the tenant dashboard summary.

Architecture position
---------------------
**Modules layer** -- ``StockService`` wraps the kernel ledger for the
operations that are not driven by an order or a purchase order.

Invariants enforced
-------------------
* Adjustments go through the ledger: a negative delta is a floor-checked
  ``reserve``, so an adjustment can never take stock below zero.
* One ADJUSTMENT movement per adjustment.
* The low-stock report nets out quantity already inbound on SENT /
  CONFIRMED purchase orders.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_config import InventoryConfig
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import (
    LowStockItem,
    StockMovementRecord,
    VariantStock,
    document_total,
    is_low_stock,
)
from inventory_kernel.exceptions import (
    EmptyLineItemsError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import get_logger, log_operation
from inventory_kernel.models.product import Product, ProductVariant
from inventory_kernel.models.stock_movement import MovementType
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.notifications import (
    CacheInvalidator,
    CacheScope,
    Notifier,
    NullCacheInvalidator,
    NullNotifier,
    PendingEffects,
    publish,
)
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator
from inventory_modules._stock_effects import (
    apply_stock_change,
    parse_price,
    queue_stock_events,
)
from inventory_modules.purchasing.service import (
    outstanding_quantities,
    pending_purchase_order_count,
)
from inventory_modules.stock.models import (
    DashboardSummary,
    ProductView,
    VariantRequest,
    VariantView,
)

logger = get_logger("modules.stock.service")


def _to_variant_request(item: VariantRequest | Mapping[str, Any]) -> VariantRequest:
    if isinstance(item, Mapping):
        item = VariantRequest(
            sku=item["sku"],
            price=item["price"],
            stock=item.get("stock", 0),
            attributes=dict(item.get("attributes") or {}),
        )
    stock = item.stock
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise InvalidQuantityError(stock, "stock")
    return VariantRequest(
        sku=item.sku,
        price=parse_price(item.price),
        stock=stock,
        attributes=dict(item.attributes),
    )


def _product_view(product: Product) -> ProductView:
    return ProductView(
        id=product.id,
        tenant_id=product.tenant_id,
        name=product.name,
        low_stock_threshold=product.low_stock_threshold,
        description=product.description,
        category=product.category,
        variants=tuple(
            VariantView(
                sku=v.sku,
                price=v.price,
                stock=v.stock,
                attributes=dict(v.attributes or {}),
            )
            for v in product.variants
        ),
    )


class StockService:
    """Catalogue and stock-level operations outside the order flows."""

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        notifier: Notifier | None = None,
        cache: CacheInvalidator | None = None,
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
    ):
        self._coordinator = coordinator
        self._notifier = notifier or NullNotifier()
        self._cache = cache or NullCacheInvalidator()
        self._clock = clock or SystemClock()
        self._config = config or InventoryConfig()

    @log_operation("create_product")
    def create_product(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        name: str,
        variants: Sequence[VariantRequest | Mapping[str, Any]],
        description: str | None = None,
        category: str | None = None,
        low_stock_threshold: int | None = None,
    ) -> ProductView:
        """
        Register a product with its variants and opening stock.

        ``low_stock_threshold`` defaults to the configured tenant default.
        """
        if not variants:
            raise EmptyLineItemsError("product")
        requests = [_to_variant_request(v) for v in variants]
        threshold = (
            self._config.default_low_stock_threshold
            if low_stock_threshold is None
            else low_stock_threshold
        )

        def unit_of_work(session: Session) -> ProductView:
            product = Product(
                tenant_id=tenant_id,
                name=name,
                description=description,
                category=category,
                low_stock_threshold=threshold,
                created_by_id=actor_id,
            )
            for req in requests:
                product.variants.append(
                    ProductVariant(
                        tenant_id=tenant_id,
                        sku=req.sku,
                        price=req.price,
                        stock=req.stock,
                        attributes=req.attributes,
                        created_by_id=actor_id,
                    )
                )
            session.add(product)
            session.flush()
            return _product_view(product)

        view = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "product_created",
            extra={
                "tenant_id": str(tenant_id),
                "product_id": str(view.id),
                "variant_count": len(view.variants),
            },
        )
        publish(
            _invalidation(tenant_id, CacheScope.PRODUCTS, CacheScope.DASHBOARD),
            self._notifier,
            self._cache,
        )
        return view

    @log_operation("get_product")
    def get_product(self, product_id: UUID, tenant_id: UUID) -> ProductView:
        """Tenant-scoped lookup."""

        def unit_of_work(session: Session) -> ProductView:
            product = session.execute(
                select(Product).where(
                    Product.id == product_id,
                    Product.tenant_id == tenant_id,
                )
            ).scalar_one_or_none()
            if product is None:
                raise ProductNotFoundError(str(product_id))
            return _product_view(product)

        return self._coordinator.run_atomically(unit_of_work)

    @log_operation("get_variant_stock")
    def get_variant_stock(self, product_id: UUID, sku: str, tenant_id: UUID) -> VariantStock:
        return self._coordinator.run_atomically(
            lambda session: StockLedger(session).get_variant_stock(product_id, sku, tenant_id)
        )

    @log_operation("adjust_stock")
    def adjust_stock(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        product_id: UUID,
        sku: str,
        delta: int,
        reason: str | None = None,
    ) -> VariantStock:
        """
        Manual correction (count discrepancy, damage, found stock).

        Raises:
            InvalidQuantityError: delta is zero or not an integer.
            VariantNotFoundError, InsufficientStockError.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise InvalidQuantityError(delta, "delta")

        def unit_of_work(session: Session) -> tuple[VariantStock, PendingEffects]:
            effects = PendingEffects(tenant_id)
            stock, movement = apply_stock_change(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                product_id=product_id,
                sku=sku,
                movement_type=MovementType.ADJUSTMENT,
                quantity=delta,
                reference="Manual adjustment",
                notes=reason,
            )
            queue_stock_events(
                effects, session, stock, movement, self._clock, check_low_stock=delta < 0
            )
            effects.invalidate(
                CacheScope.PRODUCTS, CacheScope.STOCK_MOVEMENTS, CacheScope.DASHBOARD
            )
            return stock, effects

        stock, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "stock_adjusted",
            extra={
                "tenant_id": str(tenant_id),
                "product_id": str(product_id),
                "sku": sku,
                "delta": delta,
                "stock": stock.stock,
            },
        )
        publish(effects, self._notifier, self._cache)
        return stock

    @log_operation("movement_history")
    def movement_history(
        self,
        tenant_id: UUID,
        product_id: UUID,
        sku: str,
    ) -> list[StockMovementRecord]:
        return self._coordinator.run_atomically(
            lambda session: MovementRecorder(session).list_for_variant(tenant_id, product_id, sku)
        )

    @log_operation("low_stock_report")
    def low_stock_report(self, tenant_id: UUID) -> list[LowStockItem]:
        """
        Variants below their product's threshold, net of inbound PO quantity.

        Sorted by product name, then SKU.
        """
        report = self._coordinator.run_atomically(
            lambda session: _low_stock_items(session, tenant_id)
        )
        logger.debug(
            "low_stock_report_built",
            extra={"tenant_id": str(tenant_id), "items": len(report)},
        )
        return report

    @log_operation("dashboard_summary")
    def dashboard_summary(self, tenant_id: UUID) -> DashboardSummary:
        """
        Tenant-wide figures: stock value, low-stock count, catalogue size and
        purchase orders awaiting delivery.

        The low-stock count applies the same rule as ``low_stock_report``.
        The inventory value is exact; callers round for display.
        """

        def unit_of_work(session: Session) -> DashboardSummary:
            valuation = session.execute(
                select(ProductVariant.price, ProductVariant.stock).where(
                    ProductVariant.tenant_id == tenant_id,
                )
            ).all()
            product_count = session.execute(
                select(func.count()).select_from(Product).where(Product.tenant_id == tenant_id)
            ).scalar_one()
            return DashboardSummary(
                inventory_value=document_total(valuation),
                low_stock_count=len(_low_stock_items(session, tenant_id)),
                product_count=product_count,
                pending_po_count=pending_purchase_order_count(session, tenant_id),
            )

        return self._coordinator.run_atomically(unit_of_work)


def _low_stock_items(session: Session, tenant_id: UUID) -> list[LowStockItem]:
    rows = session.execute(
        select(Product, ProductVariant)
        .join(ProductVariant, ProductVariant.product_id == Product.id)
        .where(
            Product.tenant_id == tenant_id,
            ProductVariant.tenant_id == tenant_id,
            ProductVariant.stock < Product.low_stock_threshold,
        )
        .order_by(Product.name, ProductVariant.sku)
    ).all()
    if not rows:
        return []

    inbound = outstanding_quantities(session, tenant_id)
    report = []
    for product, variant in rows:
        pending = inbound.get((product.id, variant.sku), 0)
        if is_low_stock(variant.stock, product.low_stock_threshold, pending):
            report.append(
                LowStockItem(
                    product_id=product.id,
                    product_name=product.name,
                    sku=variant.sku,
                    attributes=dict(variant.attributes or {}),
                    current_stock=variant.stock,
                    pending_po_quantity=pending,
                    threshold=product.low_stock_threshold,
                )
            )
    return report


def _invalidation(tenant_id: UUID, *scopes: CacheScope) -> PendingEffects:
    effects = PendingEffects(tenant_id)
    effects.invalidate(*scopes)
    return effects
