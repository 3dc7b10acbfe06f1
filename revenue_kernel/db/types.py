"""
Module: revenue_kernel.db.types
Responsibility: Column types and rounding helpers for monetary values.
    Centralizes precision and rounding so that every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Two fractional digits for every stored amount (MONEY_DECIMAL_PLACES).
    - round_money() is the ONLY sanctioned rounding function; it uses
      ROUND_HALF_UP.
    - No floats anywhere.  MoneyType stores exact integer cents on SQLite,
      which has no native decimal, and NUMERIC(15, 2) everywhere else.

Failure modes:
    - InvalidOperation from Decimal on malformed input to money_from_str().
    - ValueError from MoneyType if a value with more than two fractional
      digits reaches the bind step (callers must round first).
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import BigInteger, Numeric
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2
MONEY_PRECISION = 15
DEFAULT_ROUNDING = ROUND_HALF_UP

_CENTS = Decimal(10) ** MONEY_DECIMAL_PLACES
_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)

ZERO = Decimal("0.00")


class MoneyType(TypeDecorator):
    """
    Fixed-point money column.

    Contract:
        Python side is always Decimal with exactly two fractional digits.

    Guarantees:
        - SQLite: stored as BIGINT cents, so SUM() and comparisons are exact.
        - Other dialects: stored as NUMERIC(15, 2).
        - Aggregates such as func.sum(column) return Decimal through the same
          result processing.
    """

    impl = Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(
            Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if value != value.quantize(_QUANTUM):
            raise ValueError(
                f"Money value {value} has more than {MONEY_DECIMAL_PLACES} decimal places"
            )
        if dialect.name == "sqlite":
            return int(value * _CENTS)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return (Decimal(int(value)) / _CENTS).quantize(_QUANTUM)
        return Decimal(value).quantize(_QUANTUM)


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from string, rounded to two places.

    Raises:
        decimal.InvalidOperation: If value is not numeric.
    """
    return round_money(Decimal(value))


def round_money(value: Decimal, rounding: str = DEFAULT_ROUNDING) -> Decimal:
    """
    Round a monetary value to two decimal places.

    This is the ONLY sanctioned rounding function for money in the ledger.
    All other code delegates rounding here so totals computed from
    quantity * unit price and amounts entered by callers round identically.
    """
    return value.quantize(_QUANTUM, rounding=rounding)
