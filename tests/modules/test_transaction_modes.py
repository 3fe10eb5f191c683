"""
Workflow parity between transactional and direct (autocommit) execution.

The same order round trip and staged receipt run once with real
transactions and once with ``transaction_mode="disabled"``; committed stock,
document state and the movement trail must come out identical.  A failed
unit of work is the one place the modes differ.
"""

from decimal import Decimal

import pytest

from inventory_kernel.db.engine import get_autocommit_session_factory, get_session_factory
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator
from inventory_modules.orchestrator import InventoryOrchestrator
from inventory_modules.orders import OrderStatus
from inventory_modules.purchasing import POStatus

EXPECTED_STRATEGY = {"auto": "transactional", "disabled": "direct"}


@pytest.fixture(params=["auto", "disabled"])
def transaction_mode(request):
    return request.param


@pytest.fixture
def moded(db_tables, transaction_mode, inventory_config, notifier, cache, deterministic_clock, sleeps):
    coordinator = TransactionCoordinator.from_engine(
        db_tables,
        get_session_factory(),
        get_autocommit_session_factory(),
        transaction_mode=transaction_mode,
        sleep=sleeps.append,
    )
    return InventoryOrchestrator(
        coordinator,
        config=inventory_config,
        notifier=notifier,
        cache=cache,
        clock=deterministic_clock,
    )


def _movements(moded, tenant_id, product_id, sku):
    """Movement trail as a sorted list of (type, quantity)."""
    return sorted(
        (m.movement_type, m.quantity)
        for m in moded.stock.movement_history(tenant_id, product_id, sku)
    )


def test_runs_on_the_selected_strategy(moded, transaction_mode, tenant_id):
    assert moded.stock.low_stock_report(tenant_id) == []
    assert moded.coordinator.strategy.name == EXPECTED_STRATEGY[transaction_mode]


def test_order_round_trip(moded, create_product, tenant_id, actor_id, read_stock, notifier):
    product_id = create_product(variants={"TS-RED-M": 5}, low_stock_threshold=0)

    order = moded.orders.create_order(
        tenant_id, actor_id,
        [{"product_id": product_id, "sku": "TS-RED-M", "quantity": 3, "price": "10"}],
    )

    assert order.status is OrderStatus.CONFIRMED
    assert order.total_amount == Decimal("30")
    assert read_stock(product_id, "TS-RED-M") == 2
    assert _movements(moded, tenant_id, product_id, "TS-RED-M") == [("SALE", -3)]

    cancelled = moded.orders.cancel_order(order.id, tenant_id, actor_id)

    assert cancelled.status is OrderStatus.CANCELLED
    assert moded.orders.get_order(order.id, tenant_id).status is OrderStatus.CANCELLED
    assert read_stock(product_id, "TS-RED-M") == 5
    assert _movements(moded, tenant_id, product_id, "TS-RED-M") == [("RETURN", 3), ("SALE", -3)]
    assert len(notifier.events("order_created")) == 1


def test_failed_order(moded, transaction_mode, create_product, tenant_id, actor_id, read_stock):
    product_id = create_product(variants={"TS-RED-M": 5, "TS-RED-L": 1}, low_stock_threshold=0)

    with pytest.raises(InsufficientStockError):
        moded.orders.create_order(
            tenant_id, actor_id,
            [
                {"product_id": product_id, "sku": "TS-RED-M", "quantity": 2, "price": "10"},
                {"product_id": product_id, "sku": "TS-RED-L", "quantity": 4, "price": "10"},
            ],
        )

    # Direct mode keeps the reservations issued before the failing line
    expected = {"auto": 5, "disabled": 3}[transaction_mode]
    assert read_stock(product_id, "TS-RED-M") == expected
    assert read_stock(product_id, "TS-RED-L") == 1


def test_staged_receipt(moded, create_product, tenant_id, actor_id, read_stock):
    product_id = create_product(name="Widget", variants={"WG-1": 5})
    supplier = moded.purchasing.create_supplier(tenant_id, actor_id, name="Acme Textiles")
    po = moded.purchasing.create_purchase_order(
        tenant_id, actor_id, supplier.id,
        [{"product_id": product_id, "sku": "WG-1", "ordered_quantity": 20, "price": "4.50"}],
    )
    moded.purchasing.update_status(po.id, tenant_id, "SENT")

    partial = moded.purchasing.receive_items(
        po.id, tenant_id, actor_id, [{"product_id": product_id, "sku": "WG-1", "quantity": 12}]
    )

    assert partial.status is POStatus.SENT
    assert partial.line(product_id, "WG-1").received_quantity == 12
    assert read_stock(product_id, "WG-1") == 17

    complete = moded.purchasing.receive_items(
        po.id, tenant_id, actor_id, [{"product_id": product_id, "sku": "WG-1", "quantity": 8}]
    )

    assert complete.status is POStatus.RECEIVED
    assert complete.is_fully_received
    assert complete.total_amount == Decimal("90.00")
    assert read_stock(product_id, "WG-1") == 25
    assert _movements(moded, tenant_id, product_id, "WG-1") == [("PURCHASE", 8), ("PURCHASE", 12)]
    assert moded.purchasing.outstanding_quantities(tenant_id) == {}
