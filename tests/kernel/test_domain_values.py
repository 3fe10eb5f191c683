"""
Tests for pure domain helpers: low-stock rule, document totals, workflows, clock.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.values import LowStockItem, document_total, is_low_stock
from inventory_kernel.domain.workflow import Transition, Workflow
from inventory_modules.orders.workflows import ORDER_WORKFLOW
from inventory_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW


class TestLowStockRule:

    @pytest.mark.parametrize(
        "stock,threshold,pending,expected",
        [
            (9, 10, 0, True),
            (10, 10, 0, False),
            (3, 10, 5, True),
            (3, 10, 7, False),
            (3, 10, 20, False),
            (0, 0, 0, False),
        ],
    )
    def test_rule(self, stock, threshold, pending, expected):
        assert is_low_stock(stock, threshold, pending) is expected

    def test_effective_stock(self):
        item = LowStockItem(
            product_id=None, product_name="T", sku="S", attributes={},
            current_stock=3, pending_po_quantity=4, threshold=10,
        )
        assert item.effective_stock == 7


class TestDocumentTotal:

    def test_sum_of_price_times_quantity(self):
        total = document_total([(Decimal("20.00"), 2), (Decimal("5.50"), 3)])
        assert total == Decimal("56.50")

    def test_empty(self):
        assert document_total([]) == Decimal("0")


class TestWorkflows:

    def test_order_terminal_states(self):
        assert ORDER_WORKFLOW.is_terminal("FULFILLED")
        assert ORDER_WORKFLOW.is_terminal("CANCELLED")
        assert not ORDER_WORKFLOW.can_transition("CANCELLED", "CONFIRMED")
        assert ORDER_WORKFLOW.can_transition("CONFIRMED", "CANCELLED")

    def test_po_external_transitions(self):
        assert PURCHASE_ORDER_WORKFLOW.can_transition("DRAFT", "SENT", external=True)
        assert PURCHASE_ORDER_WORKFLOW.can_transition("SENT", "CONFIRMED", external=True)
        assert not PURCHASE_ORDER_WORKFLOW.can_transition("CONFIRMED", "RECEIVED", external=True)
        assert PURCHASE_ORDER_WORKFLOW.can_transition("CONFIRMED", "RECEIVED")
        assert not PURCHASE_ORDER_WORKFLOW.can_transition("DRAFT", "CONFIRMED")

    def test_receipt_transition_moves_stock(self):
        transition = PURCHASE_ORDER_WORKFLOW.find("CONFIRMED", "RECEIVED")
        assert transition.moves_stock
        assert transition.guard.name == "all_lines_received"

    def test_terminal_state_with_outgoing_transition_is_invalid(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", action="reopen"),),
                terminal_states=("B",),
            )

    def test_unknown_initial_state_is_invalid(self):
        with pytest.raises(ValueError):
            Workflow(name="broken", description="", initial_state="Z", states=("A",), transitions=())


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock(datetime(2025, 3, 1, tzinfo=timezone.utc))
        assert clock.now() == clock.now()
        clock.advance(30)
        assert clock.now() == datetime(2025, 3, 1, 0, 0, 30, tzinfo=timezone.utc)
