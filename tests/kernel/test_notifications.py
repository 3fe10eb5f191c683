"""
Tests for post-commit effects: PendingEffects, publish, in-memory collaborators.
"""

from uuid import uuid4

from inventory_kernel.services.notifications import (
    CacheScope,
    InMemoryCacheInvalidator,
    InMemoryNotifier,
    InventoryEvent,
    PendingEffects,
    publish,
)


class ExplodingNotifier:
    def __init__(self):
        self.attempts = 0

    def notify(self, tenant_id, event_name, payload):
        self.attempts += 1
        raise ConnectionError("push channel down")


class ExplodingCache:
    def invalidate(self, tenant_id, *scopes):
        raise TimeoutError("cache unreachable")


class TestPendingEffects:

    def test_collects_events_in_order_and_dedupes_scopes(self):
        effects = PendingEffects(uuid4())
        effects.emit(InventoryEvent.STOCK_MOVEMENT, {"n": 1})
        effects.emit(InventoryEvent.ORDER_CREATED, {"n": 2})
        effects.invalidate(CacheScope.ORDERS, CacheScope.PRODUCTS)
        effects.invalidate(CacheScope.ORDERS)

        assert [name for name, _ in effects.events] == ["stock_movement", "order_created"]
        assert effects.scopes == {"orders", "products"}


class TestPublish:

    def test_delivers_to_tenant(self):
        tenant = uuid4()
        notifier, cache = InMemoryNotifier(), InMemoryCacheInvalidator()
        effects = PendingEffects(tenant)
        effects.emit(InventoryEvent.PO_CREATED, {"po_number": "PO-000001"})
        effects.invalidate(CacheScope.PURCHASE_ORDERS, CacheScope.DASHBOARD)

        publish(effects, notifier, cache)

        (event,) = notifier.events()
        assert event.tenant_id == tenant
        assert event.event_name == "po_created"
        assert event.payload == {"po_number": "PO-000001"}
        assert cache.scopes_for(tenant) == {"purchase_orders", "dashboard"}

    def test_failures_are_logged_not_raised(self, captured_logs):
        notifier = ExplodingNotifier()
        effects = PendingEffects(uuid4())
        effects.emit(InventoryEvent.ORDER_UPDATED, {})
        effects.emit(InventoryEvent.LOW_STOCK, {})
        effects.invalidate(CacheScope.ORDERS)

        publish(effects, notifier, ExplodingCache())

        assert notifier.attempts == 2
        messages = [r["message"] for r in captured_logs()]
        assert messages.count("notification_failed") == 2
        assert messages.count("cache_invalidation_failed") == 1

    def test_nothing_to_publish(self):
        notifier, cache = InMemoryNotifier(), InMemoryCacheInvalidator()

        publish(PendingEffects(uuid4()), notifier, cache)

        assert notifier.events() == []
        assert cache.invalidations == []


class TestInMemoryNotifier:

    def test_filter_and_clear(self):
        notifier = InMemoryNotifier()
        tenant = uuid4()
        notifier.notify(tenant, "order_created", {})
        notifier.notify(tenant, InventoryEvent.LOW_STOCK.value, {"sku": "A"})

        assert notifier.names() == ["order_created", "low_stock"]
        assert [e.payload for e in notifier.events("low_stock")] == [{"sku": "A"}]

        notifier.clear()
        assert notifier.events() == []
