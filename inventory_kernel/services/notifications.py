"""
Post-commit collaborators: change notification and cache invalidation.

Both are called only after the unit of work that produced the change has
committed, and both are fire-and-forget: a failing notifier or cache never
turns a committed operation into an error.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol
from uuid import UUID

from inventory_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class InventoryEvent(str, Enum):
    """Event names published to the tenant's channel."""

    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    PO_CREATED = "po_created"
    PO_UPDATED = "po_updated"
    STOCK_MOVEMENT = "stock_movement"
    LOW_STOCK = "low_stock"


class CacheScope(str, Enum):
    """Cached read models keyed per tenant."""

    PRODUCTS = "products"
    ORDERS = "orders"
    PURCHASE_ORDERS = "purchase_orders"
    STOCK_MOVEMENTS = "stock_movements"
    DASHBOARD = "dashboard"


class Notifier(Protocol):
    def notify(self, tenant_id: UUID, event_name: str, payload: dict[str, Any]) -> None:
        ...


class CacheInvalidator(Protocol):
    def invalidate(self, tenant_id: UUID, *scopes: str) -> None:
        ...


class NullNotifier:
    """Discards every notification."""

    def notify(self, tenant_id: UUID, event_name: str, payload: dict[str, Any]) -> None:
        return None


class NullCacheInvalidator:
    """Nothing is cached."""

    def invalidate(self, tenant_id: UUID, *scopes: str) -> None:
        return None


@dataclass(frozen=True)
class PublishedEvent:
    tenant_id: UUID
    event_name: str
    payload: dict[str, Any]


class InMemoryNotifier:
    """Thread-safe notifier that keeps everything it is sent."""

    def __init__(self) -> None:
        self._events: list[PublishedEvent] = []
        self._lock = threading.Lock()

    def notify(self, tenant_id: UUID, event_name: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._events.append(PublishedEvent(tenant_id, str(event_name), payload))

    def events(self, event_name: str | None = None) -> list[PublishedEvent]:
        with self._lock:
            if event_name is None:
                return list(self._events)
            return [e for e in self._events if e.event_name == str(event_name)]

    def names(self) -> list[str]:
        with self._lock:
            return [e.event_name for e in self._events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class InMemoryCacheInvalidator:
    """Records (tenant_id, scope) pairs it was asked to drop."""

    def __init__(self) -> None:
        self.invalidations: list[tuple[UUID, str]] = []
        self._lock = threading.Lock()

    def invalidate(self, tenant_id: UUID, *scopes: str) -> None:
        with self._lock:
            for scope in scopes:
                self.invalidations.append((tenant_id, str(scope)))

    def scopes_for(self, tenant_id: UUID) -> set[str]:
        with self._lock:
            return {scope for tid, scope in self.invalidations if tid == tenant_id}


@dataclass
class PendingEffects:
    """
    Side effects collected inside a unit of work, published after commit.

    A unit of work may run several times under retry; each attempt builds a
    fresh PendingEffects, so only the committed attempt's effects go out.
    """

    tenant_id: UUID
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    scopes: set[str] = field(default_factory=set)

    def emit(self, event: InventoryEvent | str, payload: dict[str, Any]) -> None:
        self.events.append((str(getattr(event, "value", event)), payload))

    def invalidate(self, *scopes: CacheScope | str) -> None:
        for scope in scopes:
            self.scopes.add(str(getattr(scope, "value", scope)))


def publish(
    effects: PendingEffects,
    notifier: Notifier,
    cache: CacheInvalidator,
) -> None:
    """Invalidate caches, then notify.  Failures are logged, never raised."""
    if effects.scopes:
        try:
            cache.invalidate(effects.tenant_id, *sorted(effects.scopes))
        except Exception:
            logger.warning(
                "cache_invalidation_failed",
                extra={"tenant_id": str(effects.tenant_id), "scopes": sorted(effects.scopes)},
                exc_info=True,
            )

    for event_name, payload in effects.events:
        try:
            notifier.notify(effects.tenant_id, event_name, payload)
        except Exception:
            logger.warning(
                "notification_failed",
                extra={"tenant_id": str(effects.tenant_id), "event_name": event_name},
                exc_info=True,
            )


def publish_all(
    batches: Iterable[PendingEffects],
    notifier: Notifier,
    cache: CacheInvalidator,
) -> None:
    for effects in batches:
        publish(effects, notifier, cache)
