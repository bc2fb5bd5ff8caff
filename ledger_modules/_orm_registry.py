"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy model is imported so that
``Base.metadata`` contains its table and ``mark_append_only`` has been
called for it before tables are created or immutability listeners are
registered.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from ``ledger_kernel.db`` (allowed: modules -> kernel).
MUST NOT be imported by ``ledger_kernel``.

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``create_all_tables()`` after
``init_engine_from_url()``, then ``register_immutability_listeners()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.ar.orm  # noqa: F401
    import ledger_modules.assets.orm  # noqa: F401


def create_all_tables() -> None:
    """Register every ORM model, then create all tables on the current engine."""
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
