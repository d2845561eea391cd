"""
Module ORM Registry (``inventory_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model, kernel and module alike, is imported so
that ``Base.metadata`` contains its table before tables are created and so
that append-only models have opted in before immutability listeners are
registered.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``inventory_kernel.db.engine.create_tables`` and
``inventory_kernel.db.immutability.register_immutability_listeners``; no
other kernel code may import it.

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``create_all_tables()`` or the
kernel's ``create_tables()``; both land here.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every ``inventory_modules.*.orm`` module.

    Kernel tables (stores, products, balances, movements) are registered
    first; module tables hold foreign keys into them.

    This function is idempotent -- repeated calls are harmless.
    """
    import inventory_kernel.models  # noqa: F401
    import inventory_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import inventory_modules.transfers.orm  # noqa: F401


def create_all_tables(engine: Engine | None = None) -> None:
    """Create kernel and module tables on ``engine`` (or the module engine).

    Preconditions:
        Engine passed explicitly or initialized via ``init_engine_from_url()``.
    """
    from inventory_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
