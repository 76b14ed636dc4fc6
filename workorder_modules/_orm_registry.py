"""
Module ORM Registry (``workorder_modules._orm_registry``).

Ensures every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.
"""


def import_all_orm_models() -> None:
    """Import every ``workorder_modules.*.orm`` module.  Idempotent."""
    # fmt: off
    import workorder_modules.work_orders.orm  # noqa: F401
    import workorder_modules.vendors.orm  # noqa: F401
    # fmt: on
