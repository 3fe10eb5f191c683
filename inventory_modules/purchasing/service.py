"""
Purchasing Module Service (``inventory_modules.purchasing.service``).

Responsibility
--------------
Purchase order lifecycle: supplier registration, PO creation with atomic
numbering, the externally driven DRAFT -> SENT -> CONFIRMED progression,
and goods receipt (partial receipts, price variance absorption, stock
release).

Architecture position
---------------------
**Modules layer** -- ``PurchaseOrderService`` is the sole public entry point
for purchasing operations.  Every mutation runs as one unit of work on the
kernel ``TransactionCoordinator``; stock moves through
``_stock_effects.apply_stock_change`` (ledger + movement).

Invariants enforced
-------------------
* ``0 <= received_quantity <= ordered_quantity`` per line; receipt entries
  are validated against running totals before anything is written.
* Status is RECEIVED iff every line is fully received;
  ``actual_delivery_date`` is stamped on that transition.
* ``total_amount == sum(price * ordered_quantity)`` after every receipt,
  using the variance-adjusted prices.
* Every lookup filters by tenant_id.

Failure modes
-------------
* ``PurchaseOrderNotFoundError`` / ``SupplierNotFoundError`` /
  ``ItemNotFoundError`` -- unknown (or foreign-tenant) entity.
* ``OverReceiptError`` -- receipt exceeds the remaining quantity.
* ``PurchaseOrderAlreadyReceivedError`` -- PO is terminal.
* ``InvalidStatusTransitionError`` -- status change not declared external.

Usage::

    service = PurchaseOrderService(coordinator, notifier=notifier)
    po = service.create_purchase_order(
        tenant_id, actor_id, supplier_id,
        items=[{"product_id": pid, "sku": "TS-RED-M", "ordered_quantity": 20,
                "price": "10.00"}],
    )
    service.update_status(po.id, tenant_id, "SENT")
    service.receive_items(po.id, tenant_id, actor_id,
                          [{"product_id": pid, "sku": "TS-RED-M", "quantity": 12}])
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_config import InventoryConfig
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import document_total
from inventory_kernel.exceptions import (
    EmptyLineItemsError,
    InvalidStatusTransitionError,
    ItemNotFoundError,
    OverReceiptError,
    PurchaseOrderAlreadyReceivedError,
    PurchaseOrderNotFoundError,
    SupplierNotFoundError,
)
from inventory_kernel.logging_config import get_logger, log_operation
from inventory_kernel.models.stock_movement import MovementType
from inventory_kernel.services.notifications import (
    CacheInvalidator,
    CacheScope,
    InventoryEvent,
    Notifier,
    NullCacheInvalidator,
    NullNotifier,
    PendingEffects,
    publish,
)
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger, require_positive_quantity
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator
from inventory_modules._stock_effects import (
    apply_stock_change,
    parse_price,
    parse_product_id,
    queue_stock_events,
    require_distinct_lines,
)
from inventory_modules.purchasing.models import (
    OUTSTANDING_STATUSES,
    POStatus,
    PurchaseOrderItemRequest,
    PurchaseOrderView,
    ReceivedItem,
    Supplier,
)
from inventory_modules.purchasing.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    SupplierModel,
)
from inventory_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

logger = get_logger("modules.purchasing.service")


def _to_item_request(item: PurchaseOrderItemRequest | Mapping[str, Any]) -> PurchaseOrderItemRequest:
    if isinstance(item, Mapping):
        item = PurchaseOrderItemRequest(
            product_id=item["product_id"],
            sku=item["sku"],
            ordered_quantity=item["ordered_quantity"],
            price=item["price"],
        )
    require_positive_quantity(item.ordered_quantity, "ordered_quantity")
    return PurchaseOrderItemRequest(
        product_id=parse_product_id(item.product_id),
        sku=item.sku,
        ordered_quantity=item.ordered_quantity,
        price=parse_price(item.price),
    )


def _to_received_item(item: ReceivedItem | Mapping[str, Any]) -> ReceivedItem:
    if isinstance(item, Mapping):
        item = ReceivedItem(
            product_id=item["product_id"],
            sku=item["sku"],
            quantity=item["quantity"],
            price=item.get("price"),
        )
    require_positive_quantity(item.quantity)
    return ReceivedItem(
        product_id=parse_product_id(item.product_id),
        sku=item.sku,
        quantity=item.quantity,
        price=None if item.price is None else parse_price(item.price),
    )


class PurchaseOrderService:
    """
    Purchase order receiving engine.

    Args:
        coordinator: Runs every operation as one unit of work.
        notifier: Receives ``po_created`` / ``po_updated`` / ``stock_movement``
            after commit.
        cache: Told which tenant read models went stale after commit.
        clock: Source of ``actual_delivery_date`` and event timestamps.
        config: Numbering prefix and width.
    """

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

    # =========================================================================
    # Suppliers
    # =========================================================================

    @log_operation("create_supplier")
    def create_supplier(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        payment_terms: str | None = None,
        rating: int | None = None,
    ) -> Supplier:
        """Register a supplier for the tenant."""

        def unit_of_work(session: Session) -> Supplier:
            supplier = SupplierModel(
                tenant_id=tenant_id,
                name=name,
                email=email,
                phone=phone,
                address=address,
                payment_terms=payment_terms,
                rating=rating,
                created_by_id=actor_id,
            )
            session.add(supplier)
            session.flush()
            return supplier.to_dto()

        supplier = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "supplier_created",
            extra={"tenant_id": str(tenant_id), "supplier_id": str(supplier.id)},
        )
        return supplier

    # =========================================================================
    # Purchase orders
    # =========================================================================

    @log_operation("create_purchase_order")
    def create_purchase_order(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        supplier_id: UUID,
        items: Sequence[PurchaseOrderItemRequest | Mapping[str, Any]],
        expected_delivery_date: date | None = None,
        notes: str | None = None,
    ) -> PurchaseOrderView:
        """
        Create a DRAFT purchase order with ``received_quantity = 0`` per line.

        Raises:
            EmptyLineItemsError, InvalidQuantityError, InvalidPriceError,
            DuplicateLineItemError, ProductNotFoundError,
            SupplierNotFoundError, VariantNotFoundError.
        """
        if not items:
            raise EmptyLineItemsError("purchase order")
        requests = [_to_item_request(item) for item in items]
        require_distinct_lines(
            "purchase order", ((req.product_id, req.sku) for req in requests)
        )

        def unit_of_work(session: Session) -> tuple[PurchaseOrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)

            supplier_exists = session.execute(
                select(SupplierModel.id).where(
                    SupplierModel.id == supplier_id,
                    SupplierModel.tenant_id == tenant_id,
                )
            ).scalar_one_or_none()
            if supplier_exists is None:
                raise SupplierNotFoundError(str(supplier_id))

            ledger = StockLedger(session)
            for req in requests:
                ledger.get_variant_stock(req.product_id, req.sku, tenant_id)

            po_number = SequenceService(session).next_document_number(
                tenant_id,
                SequenceService.PURCHASE_ORDER,
                self._config.po_number_prefix,
                self._config.number_width,
            )
            po = PurchaseOrderModel(
                tenant_id=tenant_id,
                po_number=po_number,
                supplier_id=supplier_id,
                status=POStatus.DRAFT.value,
                version=1,
                total_amount=document_total(
                    (req.price, req.ordered_quantity) for req in requests
                ),
                expected_delivery_date=expected_delivery_date,
                notes=notes,
                created_by_id=actor_id,
            )
            for line_number, req in enumerate(requests, start=1):
                po.lines.append(
                    PurchaseOrderLineModel(
                        line_number=line_number,
                        product_id=req.product_id,
                        variant_sku=req.sku,
                        ordered_quantity=req.ordered_quantity,
                        received_quantity=0,
                        price=req.price,
                        created_by_id=actor_id,
                    )
                )
            session.add(po)
            session.flush()

            view = po.to_dto()
            effects.emit(InventoryEvent.PO_CREATED, _po_payload(view))
            effects.invalidate(CacheScope.PURCHASE_ORDERS, CacheScope.DASHBOARD)
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "purchase_order_created",
            extra={
                "tenant_id": str(tenant_id),
                "po_number": view.po_number,
                "line_count": len(view.lines),
                "total_amount": str(view.total_amount),
            },
        )
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("get_purchase_order")
    def get_purchase_order(self, po_id: UUID, tenant_id: UUID) -> PurchaseOrderView:
        """Tenant-scoped lookup."""
        return self._coordinator.run_atomically(
            lambda session: self._load(session, po_id, tenant_id, lock=False).to_dto()
        )

    @log_operation("update_status")
    def update_status(
        self,
        po_id: UUID,
        tenant_id: UUID,
        status: POStatus | str,
        actor_id: UUID | None = None,
    ) -> PurchaseOrderView:
        """
        Externally driven status change (DRAFT -> SENT -> CONFIRMED).

        RECEIVED is only reached through ``receive_items``.
        """

        def unit_of_work(session: Session) -> tuple[PurchaseOrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)
            po = self._load(session, po_id, tenant_id)
            target = str(getattr(status, "value", status))

            if po.status == POStatus.RECEIVED.value:
                raise PurchaseOrderAlreadyReceivedError(po.po_number)
            if not PURCHASE_ORDER_WORKFLOW.can_transition(po.status, target, external=True):
                raise InvalidStatusTransitionError("purchase order", po.status, target)

            po.status = target
            po.updated_by_id = actor_id
            po.version += 1
            session.flush()

            view = po.to_dto()
            effects.emit(InventoryEvent.PO_UPDATED, _po_payload(view))
            effects.invalidate(CacheScope.PURCHASE_ORDERS, CacheScope.DASHBOARD)
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "purchase_order_status_changed",
            extra={"po_number": view.po_number, "status": view.status.value},
        )
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("receive_items")
    def receive_items(
        self,
        po_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
        received_items: Sequence[ReceivedItem | Mapping[str, Any]],
    ) -> PurchaseOrderView:
        """
        Record a (possibly partial) goods receipt.

        For each entry: match the PO line, check it against the remaining
        quantity, absorb any price variance into the line, increment
        ``received_quantity``, release the stock and write a PURCHASE
        movement.  All of it commits together or not at all.

        Raises:
            EmptyLineItemsError, InvalidQuantityError, InvalidPriceError,
            ProductNotFoundError, PurchaseOrderNotFoundError,
            PurchaseOrderAlreadyReceivedError,
            ItemNotFoundError, OverReceiptError, VariantNotFoundError.
        """
        if not received_items:
            raise EmptyLineItemsError("receipt")
        receipts = [_to_received_item(item) for item in received_items]

        def unit_of_work(session: Session) -> tuple[PurchaseOrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)
            po = self._load(session, po_id, tenant_id)

            if po.status == POStatus.RECEIVED.value:
                raise PurchaseOrderAlreadyReceivedError(po.po_number)

            # Validate everything against running totals before any write
            matched: list[tuple[PurchaseOrderLineModel, ReceivedItem]] = []
            pending: dict[UUID, int] = {}
            for receipt in receipts:
                line = po.line_for(receipt.product_id, receipt.sku)
                if line is None:
                    raise ItemNotFoundError(str(po_id), str(receipt.product_id), receipt.sku)
                remaining = line.remaining_quantity - pending.get(line.id, 0)
                if receipt.quantity > remaining:
                    raise OverReceiptError(po.po_number, receipt.sku, receipt.quantity, remaining)
                pending[line.id] = pending.get(line.id, 0) + receipt.quantity
                matched.append((line, receipt))

            for line, receipt in matched:
                if receipt.price is not None and receipt.price != line.price:
                    logger.info(
                        "purchase_price_variance",
                        extra={
                            "po_number": po.po_number,
                            "sku": line.variant_sku,
                            "po_price": str(line.price),
                            "actual_price": str(receipt.price),
                        },
                    )
                    line.price = receipt.price
                line.received_quantity += receipt.quantity
                line.updated_by_id = actor_id

                stock, movement = apply_stock_change(
                    session,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    product_id=line.product_id,
                    sku=line.variant_sku,
                    movement_type=MovementType.PURCHASE,
                    quantity=receipt.quantity,
                    reference=po.po_number,
                    notes=f"Received against {po.po_number}",
                )
                queue_stock_events(
                    effects, session, stock, movement, self._clock, check_low_stock=False
                )

            if all(line.received_quantity == line.ordered_quantity for line in po.lines):
                if PURCHASE_ORDER_WORKFLOW.can_transition(po.status, POStatus.RECEIVED.value):
                    po.status = POStatus.RECEIVED.value
                    po.actual_delivery_date = self._clock.now()

            po.total_amount = document_total(
                (line.price, line.ordered_quantity) for line in po.lines
            )
            po.updated_by_id = actor_id
            po.version += 1
            session.flush()

            view = po.to_dto()
            effects.emit(InventoryEvent.PO_UPDATED, _po_payload(view))
            effects.invalidate(
                CacheScope.PURCHASE_ORDERS,
                CacheScope.PRODUCTS,
                CacheScope.STOCK_MOVEMENTS,
                CacheScope.DASHBOARD,
            )
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "purchase_order_items_received",
            extra={
                "tenant_id": str(tenant_id),
                "po_number": view.po_number,
                "status": view.status.value,
                "entries": len(receipts),
                "total_amount": str(view.total_amount),
            },
        )
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("outstanding_quantities")
    def outstanding_quantities(self, tenant_id: UUID) -> dict[tuple[UUID, str], int]:
        """Quantity still due per (product_id, sku) on SENT / CONFIRMED POs."""

        def unit_of_work(session: Session) -> dict[tuple[UUID, str], int]:
            return outstanding_quantities(session, tenant_id)

        return self._coordinator.run_atomically(unit_of_work)

    def _load(
        self,
        session: Session,
        po_id: UUID,
        tenant_id: UUID,
        lock: bool = True,
    ) -> PurchaseOrderModel:
        stmt = select(PurchaseOrderModel).where(
            PurchaseOrderModel.id == po_id,
            PurchaseOrderModel.tenant_id == tenant_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        po = session.execute(stmt).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po


def outstanding_quantities(session: Session, tenant_id: UUID) -> dict[tuple[UUID, str], int]:
    """Session-level form of ``PurchaseOrderService.outstanding_quantities``."""
    remaining = PurchaseOrderLineModel.ordered_quantity - PurchaseOrderLineModel.received_quantity
    rows = session.execute(
        select(
            PurchaseOrderLineModel.product_id,
            PurchaseOrderLineModel.variant_sku,
            func.sum(remaining),
        )
        .select_from(PurchaseOrderLineModel)
        .join(PurchaseOrderModel, PurchaseOrderLineModel.purchase_order_id == PurchaseOrderModel.id)
        .where(
            PurchaseOrderModel.tenant_id == tenant_id,
            PurchaseOrderModel.status.in_([s.value for s in OUTSTANDING_STATUSES]),
        )
        .group_by(PurchaseOrderLineModel.product_id, PurchaseOrderLineModel.variant_sku)
    ).all()
    return {
        (product_id, sku): int(quantity)
        for product_id, sku, quantity in rows
        if quantity
    }


def _po_payload(view: PurchaseOrderView) -> dict[str, Any]:
    return {
        "id": str(view.id),
        "po_number": view.po_number,
        "status": view.status.value,
        "supplier_id": str(view.supplier_id),
        "total_amount": str(view.total_amount),
    }


def pending_purchase_order_count(session: Session, tenant_id: UUID) -> int:
    """Purchase orders still awaiting delivery (SENT or CONFIRMED)."""
    return session.execute(
        select(func.count())
        .select_from(PurchaseOrderModel)
        .where(
            PurchaseOrderModel.tenant_id == tenant_id,
            PurchaseOrderModel.status.in_([s.value for s in OUTSTANDING_STATUSES]),
        )
    ).scalar_one()
