"""
Tests for StockService: catalogue registration, manual adjustments,
movement history, the low-stock report and the dashboard summary.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_config import InventoryConfig
from inventory_kernel.exceptions import (
    EmptyLineItemsError,
    InsufficientStockError,
    InvalidPriceError,
    InvalidQuantityError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from inventory_modules.stock import DashboardSummary, StockService, VariantRequest


class TestCreateProduct:

    def test_registers_variants(self, stock_service, tenant_id, actor_id, cache):
        product = stock_service.create_product(
            tenant_id,
            actor_id,
            name="Jacket",
            category="outerwear",
            variants=[
                VariantRequest(sku="JK-S", price=Decimal("80.00"), stock=4, attributes={"size": "S"}),
                {"sku": "JK-M", "price": "80.00", "stock": 6, "attributes": {"size": "M"}},
            ],
        )

        assert product.low_stock_threshold == 10
        assert product.variant("JK-S").attributes == {"size": "S"}
        assert product.variant("JK-M").stock == 6
        assert cache.scopes_for(tenant_id) == {"products", "dashboard"}

    def test_threshold_from_config(self, coordinator, tenant_id, actor_id):
        service = StockService(coordinator, config=InventoryConfig(default_low_stock_threshold=4))

        product = service.create_product(tenant_id, actor_id, "Belt", [{"sku": "BT-1", "price": "9"}])

        assert product.low_stock_threshold == 4
        assert product.variant("BT-1").stock == 0

    def test_explicit_threshold_wins(self, stock_service, tenant_id, actor_id):
        product = stock_service.create_product(
            tenant_id, actor_id, "Belt", [{"sku": "BT-1", "price": "9"}], low_stock_threshold=0
        )

        assert product.low_stock_threshold == 0

    @pytest.mark.parametrize(
        "variants,error",
        [
            ([], EmptyLineItemsError),
            ([{"sku": "X", "price": "1", "stock": -1}], InvalidQuantityError),
            ([{"sku": "X", "price": "-0.01"}], InvalidPriceError),
        ],
    )
    def test_rejects_malformed_variants(self, stock_service, tenant_id, actor_id, variants, error):
        with pytest.raises(error):
            stock_service.create_product(tenant_id, actor_id, "Bad", variants)

    def test_get_product_is_tenant_scoped(self, stock_service, tenant_id, other_tenant_id, actor_id):
        product = stock_service.create_product(tenant_id, actor_id, "Belt", [{"sku": "BT-1", "price": "9"}])

        assert stock_service.get_product(product.id, tenant_id).name == "Belt"
        with pytest.raises(ProductNotFoundError):
            stock_service.get_product(product.id, other_tenant_id)
        with pytest.raises(ProductNotFoundError):
            stock_service.get_product(uuid4(), tenant_id)


class TestAdjustStock:

    @pytest.fixture
    def product_id(self, create_product):
        return create_product(name="Mug", variants={"MUG-1": 10}, low_stock_threshold=5)

    def test_positive_adjustment(self, stock_service, product_id, tenant_id, actor_id):
        result = stock_service.adjust_stock(tenant_id, actor_id, product_id, "MUG-1", 5, reason="recount")

        assert result.stock == 15
        (movement,) = stock_service.movement_history(tenant_id, product_id, "MUG-1")
        assert movement.movement_type == "ADJUSTMENT"
        assert movement.quantity == 5
        assert movement.reference == "Manual adjustment"
        assert movement.notes == "recount"

    def test_negative_adjustment_can_alarm(self, stock_service, product_id, tenant_id, actor_id, notifier):
        result = stock_service.adjust_stock(tenant_id, actor_id, product_id, "MUG-1", -6, reason="broken")

        assert result.stock == 4
        assert notifier.names() == ["stock_movement", "low_stock"]

    def test_cannot_go_below_zero(self, stock_service, product_id, tenant_id, actor_id, read_stock):
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(tenant_id, actor_id, product_id, "MUG-1", -11)

        assert read_stock(product_id, "MUG-1") == 10
        assert stock_service.movement_history(tenant_id, product_id, "MUG-1") == []

    @pytest.mark.parametrize("delta", [0, 1.5, True])
    def test_rejects_invalid_delta(self, stock_service, product_id, tenant_id, actor_id, delta):
        with pytest.raises(InvalidQuantityError):
            stock_service.adjust_stock(tenant_id, actor_id, product_id, "MUG-1", delta)

    def test_unknown_variant(self, stock_service, product_id, tenant_id, actor_id):
        with pytest.raises(VariantNotFoundError):
            stock_service.adjust_stock(tenant_id, actor_id, product_id, "MUG-404", 1)

    def test_get_variant_stock(self, stock_service, product_id, tenant_id):
        stock = stock_service.get_variant_stock(product_id, "MUG-1", tenant_id)

        assert (stock.stock, stock.product_name, stock.low_stock_threshold) == (10, "Mug", 5)


class TestLowStockReport:

    def test_nets_out_inbound_and_sorts(
        self, stock_service, purchasing_service, supplier, create_product,
        tenant_id, other_tenant_id, actor_id,
    ):
        beta = create_product(name="Beta", variants={"B-1": 2})
        alpha = create_product(name="Alpha", variants={"A-2": 1, "A-1": 3})
        create_product(name="Gamma", variants={"G-1": 50})
        create_product(name="Foreign", variants={"F-1": 0}, tenant=other_tenant_id)

        po = purchasing_service.create_purchase_order(
            tenant_id, actor_id, supplier.id,
            [
                {"product_id": beta, "sku": "B-1", "ordered_quantity": 20, "price": "1"},
                {"product_id": alpha, "sku": "A-2", "ordered_quantity": 2, "price": "1"},
            ],
        )
        purchasing_service.update_status(po.id, tenant_id, "SENT")

        report = stock_service.low_stock_report(tenant_id)

        assert [(item.product_name, item.sku) for item in report] == [("Alpha", "A-1"), ("Alpha", "A-2")]
        a1, a2 = report
        assert (a1.current_stock, a1.pending_po_quantity, a1.threshold) == (3, 0, 10)
        assert (a2.current_stock, a2.pending_po_quantity) == (1, 2)
        assert a2.effective_stock == 3

    def test_empty_when_everything_stocked(self, stock_service, create_product, tenant_id):
        create_product(variants={"OK-1": 100})

        assert stock_service.low_stock_report(tenant_id) == []


class TestDashboardSummary:

    @staticmethod
    def _purchase(purchasing_service, tenant, actor_id, supplier_id, product_id, sku, *statuses):
        po = purchasing_service.create_purchase_order(
            tenant, actor_id, supplier_id,
            [{"product_id": product_id, "sku": sku, "ordered_quantity": 20, "price": "1"}],
        )
        for status in statuses:
            purchasing_service.update_status(po.id, tenant, status)
        return po

    def test_figures_are_tenant_scoped_and_net_of_inbound(
        self, stock_service, purchasing_service, supplier, create_product,
        tenant_id, other_tenant_id, actor_id,
    ):
        alpha = create_product(name="Alpha", variants={"A-1": 3, "A-2": 1}, price=Decimal("12.25"))
        beta = create_product(name="Beta", variants={"B-1": 2}, price=Decimal("20.00"))
        gamma = create_product(name="Gamma", variants={"G-1": 50}, price=Decimal("0.0125"))
        foreign = create_product(
            name="Foreign", variants={"F-1": 100}, price=Decimal("99.00"), tenant=other_tenant_id,
        )

        self._purchase(purchasing_service, tenant_id, actor_id, supplier.id, beta, "B-1", "SENT")
        self._purchase(
            purchasing_service, tenant_id, actor_id, supplier.id, gamma, "G-1", "SENT", "CONFIRMED",
        )
        # a draft is not inbound yet
        self._purchase(purchasing_service, tenant_id, actor_id, supplier.id, alpha, "A-1")
        other_supplier = purchasing_service.create_supplier(other_tenant_id, actor_id, name="Elsewhere")
        self._purchase(
            purchasing_service, other_tenant_id, actor_id, other_supplier.id, foreign, "F-1", "SENT",
        )

        summary = stock_service.dashboard_summary(tenant_id)

        assert summary == DashboardSummary(
            inventory_value=Decimal("89.625"),
            low_stock_count=2,
            product_count=3,
            pending_po_count=2,
        )
        assert summary.low_stock_count == len(stock_service.low_stock_report(tenant_id))

    def test_received_purchase_order_leaves_pending_count(
        self, stock_service, purchasing_service, supplier, create_product, tenant_id, actor_id,
    ):
        low = create_product(variants={"LOW-1": 1})
        po = self._purchase(purchasing_service, tenant_id, actor_id, supplier.id, low, "LOW-1", "SENT")

        before = stock_service.dashboard_summary(tenant_id)
        purchasing_service.receive_items(
            po.id, tenant_id, actor_id, [{"product_id": low, "sku": "LOW-1", "quantity": 5}]
        )
        partial = stock_service.dashboard_summary(tenant_id)
        purchasing_service.receive_items(
            po.id, tenant_id, actor_id, [{"product_id": low, "sku": "LOW-1", "quantity": 15}]
        )
        after = stock_service.dashboard_summary(tenant_id)

        assert (before.inventory_value, before.low_stock_count, before.pending_po_count) == (
            Decimal("20.00"), 0, 1,
        )
        assert (partial.inventory_value, partial.low_stock_count, partial.pending_po_count) == (
            Decimal("120.00"), 0, 1,
        )
        assert (after.inventory_value, after.low_stock_count, after.pending_po_count) == (
            Decimal("420.00"), 0, 0,
        )

    def test_empty_tenant(self, stock_service, tenant_id):
        assert stock_service.dashboard_summary(tenant_id) == DashboardSummary(
            inventory_value=Decimal("0"),
            low_stock_count=0,
            product_count=0,
            pending_po_count=0,
        )
