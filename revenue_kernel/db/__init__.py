"""Database layer - engine, base classes, types, and immutability."""

from revenue_kernel.db.base import Base
from revenue_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from revenue_kernel.db.types import MoneyType, round_money

__all__ = [
    "Base",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "MoneyType",
    "round_money",
]
