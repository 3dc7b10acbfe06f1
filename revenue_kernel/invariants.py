"""
Ledger Invariants Contract.

These invariants are structural law. No configuration value may switch them
off; the strict/lenient restore policy only decides whether an over-restore
is rejected or absorbed, never whether reconciliation holds.

This module exists solely to declare the invariants explicitly. Enforcement
is distributed across BalanceEngine, BalanceGate, the immutability listeners
and LedgerSelector (which verifies them after the fact).
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    RECONCILIATION = "reconciliation"
    """current_revenue == available_budget + total_spent after every commit.
    Enforced by BalanceEngine before flush; verified by
    LedgerSelector.check_reconciliation()."""

    NON_NEGATIVE_BUDGET = "non_negative_budget"
    """available_budget >= 0 at all times. Enforced by BalanceEngine
    (InsufficientFundsError / InvalidAdjustmentError)."""

    LEDGER_REPLAY = "ledger_replay"
    """Replaying transactions in (created_date, id) order from zero
    reproduces every balance_after. Verified by LedgerSelector.replay()."""

    APPEND_ONLY = "append_only"
    """RevenueTransaction rows are never updated or deleted. Enforced by
    ORM listeners (revenue_kernel.db.immutability)."""

    SINGLE_WRITER = "single_writer"
    """At most one balance mutation in flight. Enforced by BalanceGate plus
    SELECT ... FOR UPDATE and the singleton row version."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "revenue_config",
    "revenue_modules",
)
