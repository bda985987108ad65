"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its tables before ``Database.create_all()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  MUST NOT be imported by ``stock_kernel``.

Usage
-----
The application composition root and ``tests/conftest.py`` call
``create_all_tables(database)``.
"""

from stock_kernel.db.engine import Database


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module (idempotent)."""
    import stock_kernel.models  # noqa: F401
    import stock_modules.purchasing.orm  # noqa: F401


def create_all_tables(database: Database) -> None:
    """Register all ORM models, then create every table."""
    import_all_orm_models()
    database.create_all()
