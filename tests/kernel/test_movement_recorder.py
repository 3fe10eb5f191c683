"""
Tests for MovementRecorder and the append-only stock audit trail.
"""

import pytest

from inventory_kernel.exceptions import ImmutabilityViolationError, InvalidQuantityError
from inventory_kernel.models.stock_movement import MovementType, StockMovement
from inventory_kernel.services.movement_recorder import MovementRecorder


@pytest.fixture
def product_id(create_product):
    return create_product(variants={"TS-RED-M": 10})


class TestRecord:

    def test_record_returns_flushed_row(self, session, product_id, tenant_id, actor_id):
        record = MovementRecorder(session).record(
            tenant_id=tenant_id,
            product_id=product_id,
            sku="TS-RED-M",
            movement_type=MovementType.SALE,
            quantity=-2,
            actor_id=actor_id,
            reference="ORD-000001",
        )

        assert record.id is not None
        assert record.movement_type == "SALE"
        assert record.quantity == -2
        assert record.reference == "ORD-000001"
        assert record.created_at is not None

    def test_accepts_string_movement_type(self, session, product_id, tenant_id, actor_id):
        record = MovementRecorder(session).record(
            tenant_id, product_id, "TS-RED-M", "ADJUSTMENT", 3, actor_id, "Manual adjustment",
            notes="found in back room",
        )

        assert record.movement_type == "ADJUSTMENT"
        assert record.notes == "found in back room"

    @pytest.mark.parametrize("quantity", [0, 1.0, False])
    def test_rejects_zero_and_non_integer(self, session, product_id, tenant_id, actor_id, quantity):
        with pytest.raises(InvalidQuantityError):
            MovementRecorder(session).record(
                tenant_id, product_id, "TS-RED-M", MovementType.SALE, quantity, actor_id, None,
            )

    def test_logs_each_movement(self, session, product_id, tenant_id, actor_id, captured_logs):
        MovementRecorder(session).record(
            tenant_id, product_id, "TS-RED-M", MovementType.PURCHASE, 5, actor_id, "PO-000001",
        )

        logged = [r for r in captured_logs() if r["message"] == "stock_movement_recorded"]
        assert len(logged) == 1
        assert logged[0]["movement_type"] == "PURCHASE"
        assert logged[0]["quantity"] == 5


class TestQueries:

    def test_list_for_variant_is_tenant_scoped(
        self, session, product_id, tenant_id, other_tenant_id, actor_id,
    ):
        recorder = MovementRecorder(session)
        recorder.record(tenant_id, product_id, "TS-RED-M", MovementType.SALE, -1, actor_id, "ORD-000001")
        recorder.record(tenant_id, product_id, "TS-RED-M", MovementType.RETURN, 1, actor_id, "ORD-000001")
        recorder.record(other_tenant_id, product_id, "TS-RED-M", MovementType.SALE, -4, actor_id, "ORD-000009")

        mine = recorder.list_for_variant(tenant_id, product_id, "TS-RED-M")

        assert sorted(m.quantity for m in mine) == [-1, 1]
        assert {m.tenant_id for m in mine} == {tenant_id}

    def test_list_for_reference(self, session, product_id, tenant_id, actor_id):
        recorder = MovementRecorder(session)
        recorder.record(tenant_id, product_id, "TS-RED-M", MovementType.PURCHASE, 12, actor_id, "PO-000001")
        recorder.record(tenant_id, product_id, "TS-RED-M", MovementType.SALE, -2, actor_id, "ORD-000001")

        rows = recorder.list_for_reference(tenant_id, "PO-000001")

        assert [(r.movement_type, r.quantity) for r in rows] == [("PURCHASE", 12)]


class TestAppendOnly:

    def test_update_is_rejected(self, session, product_id, tenant_id, actor_id):
        record = MovementRecorder(session).record(
            tenant_id, product_id, "TS-RED-M", MovementType.SALE, -1, actor_id, "ORD-000001",
        )
        movement = session.get(StockMovement, record.id)
        movement.quantity = -100

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_is_rejected(self, session, product_id, tenant_id, actor_id):
        record = MovementRecorder(session).record(
            tenant_id, product_id, "TS-RED-M", MovementType.SALE, -1, actor_id, "ORD-000001",
        )
        session.delete(session.get(StockMovement, record.id))

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
