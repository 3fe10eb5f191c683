"""
Orders Module Service (``inventory_modules.orders.service``).

Responsibility
--------------
Sales order lifecycle: all-or-nothing creation with stock reservation,
delivery-progress tracking (partial and whole-order fulfillment), and
cancellation with stock reversal.

Architecture position
---------------------
**Modules layer** -- ``OrderService`` is the sole public entry point for
order operations.  Every mutation runs as one unit of work on the kernel
``TransactionCoordinator``; stock moves only through
``_stock_effects.apply_stock_change`` (conditional ledger update + movement).

Invariants enforced
-------------------
* Creation reserves every line or none: the first InsufficientStockError
  aborts the unit of work and rolls back the earlier reservations.
* ``0 <= fulfilled_quantity <= quantity`` per line; fulfillment requests
  are validated against running totals before any write.
* Status is FULFILLED iff every line is fully fulfilled.
* FULFILLED and CANCELLED are terminal.
* ``total_amount == sum(price * quantity)``.

Failure modes
-------------
* ``InsufficientStockError`` / ``VariantNotFoundError`` -- creation aborted.
* ``OrderNotFoundError`` / ``OrderLineNotFoundError`` -- unknown entity.
* ``OverFulfillmentError`` -- request exceeds the remaining quantity.
* ``OrderAlreadyCancelledError`` / ``OrderAlreadyFulfilledError`` /
  ``OrderCancelledError`` -- terminal order.

Audit relevance
---------------
One SALE movement per line on creation and one RETURN movement per line on
cancellation, both referencing the order number.  Fulfillment tracks
delivery only and moves no stock.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_config import InventoryConfig
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import document_total
from inventory_kernel.exceptions import (
    EmptyLineItemsError,
    InvalidStatusTransitionError,
    OrderAlreadyCancelledError,
    OrderAlreadyFulfilledError,
    OrderCancelledError,
    OrderLineNotFoundError,
    OrderNotFoundError,
    OverFulfillmentError,
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
from inventory_kernel.services.stock_ledger import require_positive_quantity
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator
from inventory_modules._stock_effects import (
    apply_stock_change,
    parse_price,
    parse_product_id,
    queue_stock_events,
    require_distinct_lines,
)
from inventory_modules.orders.models import (
    FulfillmentRequest,
    OrderItemRequest,
    OrderStatus,
    OrderView,
)
from inventory_modules.orders.orm import SalesOrderLineModel, SalesOrderModel
from inventory_modules.orders.workflows import ORDER_WORKFLOW

logger = get_logger("modules.orders.service")


def _to_item_request(item: OrderItemRequest | Mapping[str, Any]) -> OrderItemRequest:
    if isinstance(item, Mapping):
        item = OrderItemRequest(
            product_id=item["product_id"],
            sku=item["sku"],
            quantity=item["quantity"],
            price=item["price"],
        )
    require_positive_quantity(item.quantity)
    return OrderItemRequest(
        product_id=parse_product_id(item.product_id),
        sku=item.sku,
        quantity=item.quantity,
        price=parse_price(item.price),
    )


def _to_fulfillment(item: FulfillmentRequest | Mapping[str, Any]) -> FulfillmentRequest:
    if isinstance(item, Mapping):
        item = FulfillmentRequest(
            sku=item["sku"],
            quantity=item["quantity"],
            product_id=item.get("product_id"),
        )
    require_positive_quantity(item.quantity)
    if item.product_id is None:
        return item
    return FulfillmentRequest(
        sku=item.sku,
        quantity=item.quantity,
        product_id=parse_product_id(item.product_id),
    )


class OrderService:
    """
    Order reconciliation engine.

    Args:
        coordinator: Runs every operation as one unit of work.
        notifier: Receives ``order_created`` / ``order_updated`` /
            ``stock_movement`` / ``low_stock`` after commit.
        cache: Told which tenant read models went stale after commit.
        clock: Source of event timestamps.
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

    @log_operation("create_order")
    def create_order(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        items: Sequence[OrderItemRequest | Mapping[str, Any]],
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
    ) -> OrderView:
        """
        Reserve stock for every line and persist a CONFIRMED order.

        Postconditions:
            - Each variant's stock is reduced by its line quantity.
            - One SALE movement (-quantity) per line, reference = order number.
            - Every line has ``fulfilled_quantity == 0``.

        Raises:
            EmptyLineItemsError, InvalidQuantityError, InvalidPriceError,
            DuplicateLineItemError, ProductNotFoundError,
            VariantNotFoundError, InsufficientStockError.
        """
        if not items:
            raise EmptyLineItemsError("order")
        requests = [_to_item_request(item) for item in items]
        require_distinct_lines("order", ((req.product_id, req.sku) for req in requests))

        def unit_of_work(session: Session) -> tuple[OrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)

            order_number = SequenceService(session).next_document_number(
                tenant_id,
                SequenceService.SALES_ORDER,
                self._config.order_number_prefix,
                self._config.number_width,
            )

            for req in requests:
                stock, movement = apply_stock_change(
                    session,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    product_id=req.product_id,
                    sku=req.sku,
                    movement_type=MovementType.SALE,
                    quantity=-req.quantity,
                    reference=order_number,
                )
                queue_stock_events(effects, session, stock, movement, self._clock)

            order = SalesOrderModel(
                tenant_id=tenant_id,
                order_number=order_number,
                status=OrderStatus.CONFIRMED.value,
                total_amount=document_total((req.price, req.quantity) for req in requests),
                customer_name=customer_name,
                customer_email=customer_email,
                notes=notes,
                version=1,
                created_by_id=actor_id,
            )
            for line_number, req in enumerate(requests, start=1):
                order.lines.append(
                    SalesOrderLineModel(
                        line_number=line_number,
                        product_id=req.product_id,
                        variant_sku=req.sku,
                        quantity=req.quantity,
                        fulfilled_quantity=0,
                        price=req.price,
                        created_by_id=actor_id,
                    )
                )
            session.add(order)
            session.flush()

            view = order.to_dto()
            effects.emit(InventoryEvent.ORDER_CREATED, _order_payload(view))
            effects.invalidate(
                CacheScope.ORDERS,
                CacheScope.PRODUCTS,
                CacheScope.STOCK_MOVEMENTS,
                CacheScope.DASHBOARD,
            )
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "order_created",
            extra={
                "tenant_id": str(tenant_id),
                "order_number": view.order_number,
                "line_count": len(view.lines),
                "total_amount": str(view.total_amount),
            },
        )
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("get_order")
    def get_order(self, order_id: UUID, tenant_id: UUID) -> OrderView:
        """Tenant-scoped lookup."""
        return self._coordinator.run_atomically(
            lambda session: self._load(session, order_id, tenant_id, lock=False).to_dto()
        )

    @log_operation("fulfill_order_items")
    def fulfill_order_items(
        self,
        order_id: UUID,
        tenant_id: UUID,
        fulfillments: Sequence[FulfillmentRequest | Mapping[str, Any]],
        actor_id: UUID | None = None,
    ) -> OrderView:
        """
        Record delivery progress for some lines.

        Stock was reserved at creation; nothing moves here.  The order
        becomes FULFILLED once every line is complete.

        Raises:
            EmptyLineItemsError, InvalidQuantityError, OrderNotFoundError,
            OrderCancelledError, OrderAlreadyFulfilledError,
            OrderLineNotFoundError, OverFulfillmentError.
        """
        if not fulfillments:
            raise EmptyLineItemsError("fulfillment")
        requests = [_to_fulfillment(item) for item in fulfillments]

        def unit_of_work(session: Session) -> tuple[OrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)
            order = self._load(session, order_id, tenant_id)
            self._check_fulfillable(order)

            matched: list[tuple[SalesOrderLineModel, int]] = []
            pending: dict[UUID, int] = {}
            for req in requests:
                line = order.line_for(req.sku, req.product_id)
                if line is None:
                    raise OrderLineNotFoundError(str(order_id), req.sku)
                remaining = line.remaining_quantity - pending.get(line.id, 0)
                if req.quantity > remaining:
                    raise OverFulfillmentError(order.order_number, req.sku, req.quantity, remaining)
                pending[line.id] = pending.get(line.id, 0) + req.quantity
                matched.append((line, req.quantity))

            for line, quantity in matched:
                line.fulfilled_quantity += quantity
                line.updated_by_id = actor_id

            if all(line.fulfilled_quantity == line.quantity for line in order.lines):
                self._transition(order, OrderStatus.FULFILLED)

            view = self._save(session, order, actor_id, effects)
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "order_items_fulfilled",
            extra={
                "order_number": view.order_number,
                "status": view.status.value,
                "entries": len(requests),
            },
        )
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("fulfill_order")
    def fulfill_order(
        self,
        order_id: UUID,
        tenant_id: UUID,
        actor_id: UUID | None = None,
    ) -> OrderView:
        """Mark every line fully delivered and the order FULFILLED."""

        def unit_of_work(session: Session) -> tuple[OrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)
            order = self._load(session, order_id, tenant_id)
            self._check_fulfillable(order)

            for line in order.lines:
                if line.fulfilled_quantity != line.quantity:
                    line.fulfilled_quantity = line.quantity
                    line.updated_by_id = actor_id
            self._transition(order, OrderStatus.FULFILLED)

            view = self._save(session, order, actor_id, effects)
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info("order_fulfilled", extra={"order_number": view.order_number})
        publish(effects, self._notifier, self._cache)
        return view

    @log_operation("cancel_order")
    def cancel_order(self, order_id: UUID, tenant_id: UUID, actor_id: UUID) -> OrderView:
        """
        Cancel the order and return every line's full ordered quantity to stock.

        The whole reservation is reversed regardless of delivery progress.

        Raises:
            OrderNotFoundError, OrderAlreadyCancelledError,
            OrderAlreadyFulfilledError.
        """

        def unit_of_work(session: Session) -> tuple[OrderView, PendingEffects]:
            effects = PendingEffects(tenant_id)
            order = self._load(session, order_id, tenant_id)

            if order.status == OrderStatus.CANCELLED.value:
                raise OrderAlreadyCancelledError(order.order_number)
            if order.status == OrderStatus.FULFILLED.value:
                raise OrderAlreadyFulfilledError(order.order_number)

            for line in order.lines:
                stock, movement = apply_stock_change(
                    session,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    product_id=line.product_id,
                    sku=line.variant_sku,
                    movement_type=MovementType.RETURN,
                    quantity=line.quantity,
                    reference=order.order_number,
                    notes=f"Order {order.order_number} cancelled",
                )
                queue_stock_events(
                    effects, session, stock, movement, self._clock, check_low_stock=False
                )

            self._transition(order, OrderStatus.CANCELLED)
            view = self._save(session, order, actor_id, effects)
            effects.invalidate(CacheScope.PRODUCTS, CacheScope.STOCK_MOVEMENTS)
            return view, effects

        view, effects = self._coordinator.run_atomically(unit_of_work)
        logger.info(
            "order_cancelled",
            extra={
                "tenant_id": str(tenant_id),
                "order_number": view.order_number,
                "lines_reversed": len(view.lines),
            },
        )
        publish(effects, self._notifier, self._cache)
        return view

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(
        self,
        session: Session,
        order_id: UUID,
        tenant_id: UUID,
        lock: bool = True,
    ) -> SalesOrderModel:
        stmt = select(SalesOrderModel).where(
            SalesOrderModel.id == order_id,
            SalesOrderModel.tenant_id == tenant_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        order = session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    @staticmethod
    def _check_fulfillable(order: SalesOrderModel) -> None:
        if order.status == OrderStatus.FULFILLED.value:
            raise OrderAlreadyFulfilledError(order.order_number)
        if order.status == OrderStatus.CANCELLED.value:
            raise OrderCancelledError(order.order_number)

    @staticmethod
    def _transition(order: SalesOrderModel, target: OrderStatus) -> None:
        if not ORDER_WORKFLOW.can_transition(order.status, target.value):
            raise InvalidStatusTransitionError("order", order.status, target.value)
        order.status = target.value

    @staticmethod
    def _save(
        session: Session,
        order: SalesOrderModel,
        actor_id: UUID | None,
        effects: PendingEffects,
    ) -> OrderView:
        order.updated_by_id = actor_id
        order.version += 1
        session.flush()
        view = order.to_dto()
        effects.emit(InventoryEvent.ORDER_UPDATED, _order_payload(view))
        effects.invalidate(CacheScope.ORDERS, CacheScope.DASHBOARD)
        return view


def _order_payload(view: OrderView) -> dict[str, Any]:
    return {
        "id": str(view.id),
        "order_number": view.order_number,
        "status": view.status.value,
        "total_amount": str(view.total_amount),
    }
