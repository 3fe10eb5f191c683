"""
inventory_modules.orchestrator -- Central DI container for the inventory core.

Responsibility:
    Creates the TransactionCoordinator and every module service exactly once
    and wires them to the same notifier, cache invalidator, clock and
    configuration.  No service creates other services internally.

Architecture position:
    Modules layer, top.  The only place where the kernel, the configuration
    and the module services are composed.

Usage:
    from inventory_config import get_active_config
    from inventory_modules.orchestrator import build_inventory_orchestrator

    orchestrator = build_inventory_orchestrator(get_active_config(), notifier=notifier)
    orchestrator.orders.create_order(tenant_id, actor_id, items)
    orchestrator.purchasing.receive_items(po_id, tenant_id, actor_id, received)
"""

from __future__ import annotations

from inventory_config import InventoryConfig
from inventory_kernel.db.engine import (
    create_tables,
    get_autocommit_session_factory,
    get_engine,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.notifications import (
    CacheInvalidator,
    Notifier,
    NullCacheInvalidator,
    NullNotifier,
)
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator
from inventory_modules.orders.service import OrderService
from inventory_modules.purchasing.service import PurchaseOrderService
from inventory_modules.stock.service import StockService

logger = get_logger("modules.orchestrator")


class InventoryOrchestrator:
    """
    Wires one coordinator to the order, purchasing and stock services.

    All services are available as attributes.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        config: InventoryConfig | None = None,
        notifier: Notifier | None = None,
        cache: CacheInvalidator | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or InventoryConfig()
        self.coordinator = coordinator
        self.notifier = notifier or NullNotifier()
        self.cache = cache or NullCacheInvalidator()
        self.clock = clock or SystemClock()

        shared = dict(
            notifier=self.notifier,
            cache=self.cache,
            clock=self.clock,
            config=self.config,
        )
        self.orders = OrderService(coordinator, **shared)
        self.purchasing = PurchaseOrderService(coordinator, **shared)
        self.stock = StockService(coordinator, **shared)


def build_coordinator(config: InventoryConfig, **kwargs) -> TransactionCoordinator:
    """Coordinator over the initialized engine, tuned by ``config``."""
    return TransactionCoordinator.from_engine(
        get_engine(),
        get_session_factory(),
        get_autocommit_session_factory(),
        transaction_mode=config.transaction_mode,
        max_retries=config.max_retries,
        backoff_unit=config.retry_backoff_seconds,
        **kwargs,
    )


def build_inventory_orchestrator(
    config: InventoryConfig,
    notifier: Notifier | None = None,
    cache: CacheInvalidator | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> InventoryOrchestrator:
    """
    Initialize the engine from ``config.database_url``, install the
    append-only guard on stock movements and build everything.

    Raises:
        ValueError: ``config.database_url`` is not set.
    """
    if not config.database_url:
        raise ValueError("database_url must be configured")

    init_engine_from_url(config.database_url, echo=config.echo_sql)
    register_immutability_listeners()
    if create_schema:
        create_tables()

    orchestrator = InventoryOrchestrator(
        build_coordinator(config),
        config=config,
        notifier=notifier,
        cache=cache,
        clock=clock,
    )
    logger.info(
        "inventory_orchestrator_built",
        extra={
            "dialect": get_engine().dialect.name,
            "transaction_mode": config.transaction_mode,
            "max_retries": config.max_retries,
        },
    )
    return orchestrator
