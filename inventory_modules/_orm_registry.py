"""
Module ORM Registry (``inventory_modules._orm_registry``).

Ensure kernel and module SQLAlchemy models are imported so that
``Base.metadata`` contains every table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``inventory_kernel.db.engine.create_tables`` and ``drop_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``inventory_modules.*.orm`` module.

    Kernel tables first: module lines reference ``products.id``.
    Idempotent.
    """
    import inventory_kernel.models  # noqa: F401
    import inventory_modules.orders.orm  # noqa: F401
    import inventory_modules.purchasing.orm  # noqa: F401
