"""
DTOs -- Pure domain data transfer objects for the revenue ledger.

Responsibility:
    Defines the immutable structures that cross the service/selector
    boundary: RevenueSnapshot and TransactionRecord (persistence boundary),
    TransactionFilter and Pagination (query input), and the audit reports
    (ReplayReport, ReconciliationReport, RevenueStatistics, MonthlySpending).

Architecture position:
    Kernel > Domain -- pure, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers; they never query the database.

Invariants enforced:
    - Every DTO is a frozen dataclass; callers cannot mutate ledger state
      through a returned value.
    - Datetimes are timezone-aware UTC (SQLite returns naive values, which
      from_model() normalizes).

Failure modes:
    - ValueError from Pagination with limit < 1 or offset < 0.
    - ValueError from TransactionFilter when start >= end.

Audit relevance:
    ReplayReport and ReconciliationReport are the auditable artifacts that
    prove the balance singleton agrees with the append-only history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from revenue_kernel.models.company_revenue import CompanyRevenue
    from revenue_kernel.models.revenue_transaction import RevenueTransaction


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RevenueSnapshot:
    """
    Point-in-time copy of the CompanyRevenue singleton.

    Guarantees:
        - Values are exactly those of the committed row at read time.
    """

    current_revenue: Decimal
    available_budget: Decimal
    total_spent: Decimal
    last_updated: datetime
    updated_by: str | None
    update_reason: str | None
    version: int

    @property
    def is_reconciled(self) -> bool:
        return self.current_revenue == self.available_budget + self.total_spent

    @classmethod
    def from_model(cls, model: CompanyRevenue) -> RevenueSnapshot:
        return cls(
            current_revenue=model.current_revenue,
            available_budget=model.available_budget,
            total_spent=model.total_spent,
            last_updated=as_utc(model.last_updated),
            updated_by=model.updated_by,
            update_reason=model.update_reason,
            version=model.version,
        )


@dataclass(frozen=True)
class TransactionRecord:
    """
    Immutable view of one ledger row.

    Contract:
        ``signed_amount`` is negative for debits, positive for credits.
    """

    id: int
    transaction_type: str
    direction: str
    amount: Decimal
    product_request_id: int | None
    created_by: str | None
    created_date: datetime
    description: str | None
    balance_after: Decimal

    @property
    def signed_amount(self) -> Decimal:
        if self.direction == "debit":
            return -self.amount
        return self.amount

    @classmethod
    def from_model(cls, model: RevenueTransaction) -> TransactionRecord:
        return cls(
            id=model.id,
            transaction_type=model.transaction_type,
            direction=model.direction,
            amount=model.amount,
            product_request_id=model.product_request_id,
            created_by=model.created_by,
            created_date=as_utc(model.created_date),
            description=model.description,
            balance_after=model.balance_after,
        )


@dataclass(frozen=True)
class TransactionFilter:
    """
    Criteria for listing ledger rows.  Empty fields do not filter.

    ``start`` is inclusive, ``end`` exclusive.
    """

    transaction_types: tuple[str, ...] = ()
    direction: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    product_request_id: int | None = None
    created_by: str | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError(
                f"Transaction filter start {self.start} must be before end {self.end}"
            )
        if self.direction is not None and self.direction not in ("debit", "credit"):
            raise ValueError(f"Unknown ledger direction: {self.direction!r}")


@dataclass(frozen=True)
class Pagination:
    """Offset/limit window over an ordered result."""

    offset: int = 0
    limit: int = 100

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"Pagination offset must be >= 0, got {self.offset}")
        if self.limit < 1:
            raise ValueError(f"Pagination limit must be >= 1, got {self.limit}")


@dataclass(frozen=True)
class ReplayMismatch:
    """A ledger row whose stored balance_after disagrees with replay."""

    transaction_id: int
    stored_balance_after: Decimal
    replayed_balance_after: Decimal


@dataclass(frozen=True)
class ReplayReport:
    """
    Result of replaying the whole ledger from a zero baseline.

    Guarantees:
        - ``final_balance`` is the replayed balance after the last row.
        - ``is_consistent`` is True iff every row matched and the final
          balance equals the singleton's available_budget.
    """

    transaction_count: int
    final_balance: Decimal
    available_budget: Decimal
    mismatches: tuple[ReplayMismatch, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.mismatches and self.final_balance == self.available_budget


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of checking the singleton against its own invariants and the ledger."""

    snapshot: RevenueSnapshot
    replayed_balance: Decimal
    violations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_reconciled(self) -> bool:
        return not self.violations


class BudgetStatus(str, Enum):
    """Utilization band reported by LedgerSelector.statistics()."""

    HEALTHY = "Healthy"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def for_utilization(cls, percentage: Decimal) -> BudgetStatus:
        if percentage < 50:
            return cls.HEALTHY
        if percentage < 75:
            return cls.MODERATE
        if percentage < 90:
            return cls.HIGH
        return cls.CRITICAL


@dataclass(frozen=True)
class RevenueStatistics:
    """Dashboard figures derived from the singleton and the ledger."""

    as_of: datetime
    current_revenue: Decimal
    available_budget: Decimal
    total_spent: Decimal
    utilization_percentage: Decimal
    budget_status: BudgetStatus
    transaction_count: int
    last_30_days_spending: Decimal


@dataclass(frozen=True)
class MonthlySpending:
    """ORDER_PLACED totals for a month and the month before it."""

    year: int
    month: int
    current_month: Decimal
    previous_month: Decimal

    @property
    def change(self) -> Decimal:
        return self.current_month - self.previous_month
