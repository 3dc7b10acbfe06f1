"""Write-side kernel services: ledger store, balance gate, balance engine."""

from revenue_kernel.services.balance_engine import BalanceEngine, coerce_money
from revenue_kernel.services.balance_gate import BalanceGate, get_default_gate
from revenue_kernel.services.base import BaseService, unit_of_work
from revenue_kernel.services.ledger_store import LedgerStore

__all__ = [
    "BalanceEngine",
    "BalanceGate",
    "BaseService",
    "LedgerStore",
    "coerce_money",
    "get_default_gate",
    "unit_of_work",
]
