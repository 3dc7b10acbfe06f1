"""
Module: revenue_kernel.models.revenue_transaction
Responsibility: ORM persistence for the append-only revenue ledger.  One row
    per balance movement: deductions for approved orders, restores for
    cancelled/rejected orders, administrative adjustments, opening balances.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - amount is stored non-negative; direction (debit/credit) carries the sign
      of the movement against available_budget.  transaction_type is an
      open-ended label and is NOT used to infer the sign.
    - balance_after is the available_budget immediately after this row
      committed.  Replaying rows in (created_date, id) order from zero
      reproduces every balance_after.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    This table IS the ledger.  The CompanyRevenue singleton is only the
    running total; this table is what auditors replay.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base


class TransactionType(str, Enum):
    """Default transaction type labels.

    The column is an open-ended string; callers of the Balance Engine may
    supply their own labels for deductions and restores.
    """

    ORDER_PLACED = "ORDER_PLACED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_REJECTED = "ORDER_REJECTED"
    ADJUSTMENT = "ADJUSTMENT"
    OPENING_BALANCE = "OPENING_BALANCE"


class LedgerDirection(str, Enum):
    """Sign of a ledger movement against available_budget."""

    DEBIT = "debit"    # available_budget decreases
    CREDIT = "credit"  # available_budget increases


class RevenueTransaction(Base):
    """
    Immutable ledger row.

    Contract:
        Created only through LedgerStore.append_transaction(), which assigns
        created_date from the injected clock.  Never updated or deleted.

    Guarantees:
        - id is monotonically increasing (store-assigned).
        - amount >= 0, balance_after >= 0.
    """

    __tablename__ = "revenue_transactions"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_revenue_tx_amount_non_negative"),
        CheckConstraint("balance_after >= 0", name="ck_revenue_tx_balance_non_negative"),
        CheckConstraint(
            "direction IN ('debit', 'credit')", name="ck_revenue_tx_direction"
        ),
        Index("idx_revenue_tx_created", "created_date", "id"),
        Index("idx_revenue_tx_type", "transaction_type"),
        Index("idx_revenue_tx_request", "product_request_id"),
    )

    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # No FK: the ledger must be writable without the request tables present
    product_request_id: Mapped[int | None] = mapped_column(nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_date: Mapped[datetime] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign of its effect on available_budget."""
        if self.direction == LedgerDirection.DEBIT.value:
            return -self.amount
        return self.amount

    def __repr__(self) -> str:
        return (
            f"<RevenueTransaction #{self.id} {self.transaction_type} "
            f"{self.direction} {self.amount} -> {self.balance_after}>"
        )
