"""
Module: revenue_kernel.db.base
Responsibility: Declarative base class for all SQLAlchemy ORM models.  Provides
    the integer primary key convention and the type annotation map used for
    consistent column types.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Integer primary keys: every model gets a store-assigned, monotonically
      increasing integer id.  RevenueTransaction relies on this to break ties
      between rows stamped with the same created_date.
    - Decimal precision: type_annotation_map maps Python Decimal to MoneyType
      (two fractional digits, exact on every dialect).  NEVER use float for
      monetary amounts.
    - datetime maps to DateTime(timezone=True).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from revenue_kernel.db.types import MoneyType

# SQLite only auto-increments an INTEGER PRIMARY KEY column.
IdentityKey = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the system inherits from Base.  Base provides an
        integer primary key and a type_annotation_map that enforces
        consistent column types across the entire schema.

    Guarantees:
        - id is assigned by the database on INSERT and never reused.
        - Decimal maps to MoneyType (two places).
        - datetime maps to DateTime(timezone=True).
        - str without an explicit type maps to String(255).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: MoneyType(),
        datetime: DateTime(timezone=True),
        str: String(255),
        int: Integer,
    }

    id: Mapped[int] = mapped_column(
        IdentityKey,
        primary_key=True,
        autoincrement=True,
    )
