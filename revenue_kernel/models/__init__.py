"""Domain models for the revenue kernel."""

from revenue_kernel.models.company_revenue import SINGLETON_ID, CompanyRevenue
from revenue_kernel.models.revenue_transaction import (
    LedgerDirection,
    RevenueTransaction,
    TransactionType,
)

__all__ = [
    "CompanyRevenue",
    "SINGLETON_ID",
    "LedgerDirection",
    "RevenueTransaction",
    "TransactionType",
]
