"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_operation,
    reset_logging,
)
from inventory_kernel.services.notifications import CacheScope


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state around each test, then restore the suite setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("stock_reserved", extra={"sku": "TS-RED-M", "quantity": 4})

        record = _parse_log(stream)
        assert record["sku"] == "TS-RED-M"
        assert record["quantity"] == 4

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", tenant_id="tenant-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["tenant_id"] == "tenant-1"

    def test_bind_restores_previous_context(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        tenant = uuid4()
        with LogContext.bind(tenant_id=tenant, actor_id="ops"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = [json.loads(line) for line in stream.getvalue().strip().split("\n")]
        assert inside["tenant_id"] == str(tenant)
        assert inside["actor_id"] == "ops"
        assert "tenant_id" not in outside

    def test_inventory_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("prod-1", "TS-RED-M", 6, 4)
        except InsufficientStockError:
            get_logger("test").error("reservation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_sku"] == "TS-RED-M"
        assert record["exc_requested"] == 6
        assert record["exc_available"] == 4
        assert "traceback" in record

    def test_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed",
            extra={"entity_id": uid, "amount": Decimal("12.50"), "scope": CacheScope.ORDERS},
        )

        record = _parse_log(stream)
        assert record["entity_id"] == str(uid)
        assert record["amount"] == "12.50"
        assert record["scope"] == "orders"


class TestConfigureLogging:

    def test_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("inventory_kernel").handlers
        assert first in handlers
        assert second not in handlers
        assert sum(isinstance(h.formatter, StructuredFormatter) for h in handlers) == 1

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("dropped")

        assert stream.getvalue() == ""


class TestOperationContext:

    def test_unknown_context_field_rejected(self):
        with pytest.raises(TypeError, match="warehouse"):
            LogContext.set(warehouse="north")

    def test_log_operation_binds_call_arguments(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        tenant, actor = uuid4(), uuid4()

        @log_operation("adjust_stock")
        def adjust(tenant_id, actor_id, sku, delta):
            get_logger("test").info("stock_adjusted", extra={"sku": sku, "delta": delta})
            return delta

        assert adjust(tenant, actor_id=actor, sku="MUG-1", delta=-2) == -2
        get_logger("test").info("after")

        inside, after = [json.loads(line) for line in stream.getvalue().strip().split("\n")]
        assert inside["operation"] == "adjust_stock"
        assert inside["tenant_id"] == str(tenant)
        assert inside["actor_id"] == str(actor)
        assert inside["delta"] == -2
        assert "operation" not in after

    def test_nested_operation_keeps_outer_tenant(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @log_operation("outstanding_quantities")
        def inner(tenant_id):
            get_logger("test").info("inner")

        with LogContext.bind(tenant_id="tenant-1", actor_id="ops", operation="low_stock_report"):
            inner("tenant-1")

        record = _parse_log(stream)
        assert record["operation"] == "outstanding_quantities"
        assert record["actor_id"] == "ops"

    def test_context_restored_when_operation_raises(self):
        @log_operation("cancel_order")
        def cancel(tenant_id):
            raise InsufficientStockError("p", "s", 1, 0)

        with pytest.raises(InsufficientStockError):
            cancel("tenant-1")

        assert LogContext.get_all() == {}
