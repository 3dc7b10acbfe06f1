"""Pure domain layer: clock, DTOs, workflow value objects."""

from revenue_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from revenue_kernel.domain.dtos import (
    BudgetStatus,
    MonthlySpending,
    Pagination,
    ReconciliationReport,
    ReplayMismatch,
    ReplayReport,
    RevenueSnapshot,
    RevenueStatistics,
    TransactionFilter,
    TransactionRecord,
)
from revenue_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "BudgetStatus",
    "Clock",
    "DeterministicClock",
    "Guard",
    "MonthlySpending",
    "Pagination",
    "ReconciliationReport",
    "ReplayMismatch",
    "ReplayReport",
    "RevenueSnapshot",
    "RevenueStatistics",
    "SystemClock",
    "Transition",
    "TransactionFilter",
    "TransactionRecord",
    "Workflow",
]
