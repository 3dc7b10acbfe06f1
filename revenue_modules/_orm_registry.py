"""
Module ORM Registry (``revenue_modules._orm_registry``).

Responsibility
--------------
Ensure kernel and module ORM models are imported so that ``Base.metadata``
holds every table before ``create_all()`` runs, and install every
immutability listener.  ``create_all_tables()`` is the one entry point that
scripts and ``tests/conftest.py`` use to get the complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``revenue_kernel`` (allowed:
modules -> kernel).  MUST NOT be imported by ``revenue_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every module ORM.  Idempotent."""
    import revenue_kernel.models  # noqa: F401
    import revenue_modules.product_requests.orm  # noqa: F401


def register_all_listeners() -> None:
    """Install kernel and module immutability listeners.  Idempotent."""
    from revenue_kernel.db.immutability import register_immutability_listeners
    from revenue_modules.product_requests.orm import (
        register_request_immutability_listeners,
    )

    register_immutability_listeners()
    register_request_immutability_listeners()


def create_all_tables() -> None:
    """
    Create kernel + module tables and install the listeners.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from revenue_kernel.db.engine import create_tables

    import_all_orm_models()
    register_all_listeners()
    create_tables()
