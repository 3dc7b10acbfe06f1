"""
Module: revenue_kernel.models.company_revenue
Responsibility: ORM persistence for the CompanyRevenue singleton -- the one
    mutable row holding the company's current revenue, available budget and
    cumulative spending.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - available_budget >= 0 and current_revenue == available_budget +
      total_spent after every committed mutation (BalanceEngine checks before
      flush; CheckConstraints back the non-negativity on the database side).
    - version is bumped on every UPDATE (SQLAlchemy version_id_col), so two
      sessions that read the same version cannot both commit an update.

Failure modes:
    - StaleDataError on flush when another transaction already committed a
      newer version (mapped to OptimisticLockError by the Balance Engine).
    - IntegrityError if a CheckConstraint is violated by a direct write.

Audit relevance:
    last_updated, updated_by and update_reason record who last moved the
    balance and why.  The full history lives in revenue_transactions; this
    row is only the running total that history reconciles to.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base
from revenue_kernel.db.types import ZERO

# The singleton always lives at this primary key; a second INSERT fails.
SINGLETON_ID = 1


class CompanyRevenue(Base):
    """
    Company-wide operating budget singleton.

    Contract:
        Exactly one row exists once the ledger is initialized.  Only
        BalanceEngine mutates available_budget / total_spent.

    Guarantees:
        - Non-negative current_revenue, available_budget, total_spent.
        - Optimistic row version for lost-update detection.
    """

    __tablename__ = "company_revenue"

    __table_args__ = (
        CheckConstraint(f"id = {SINGLETON_ID}", name="ck_revenue_singleton"),
        CheckConstraint("available_budget >= 0", name="ck_revenue_available_non_negative"),
        CheckConstraint("current_revenue >= 0", name="ck_revenue_current_non_negative"),
        CheckConstraint("total_spent >= 0", name="ck_revenue_spent_non_negative"),
    )

    current_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    available_budget: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_spent: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    last_updated: Mapped[datetime] = mapped_column(nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    update_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_reconciled(self) -> bool:
        """True when current_revenue == available_budget + total_spent."""
        return self.current_revenue == self.available_budget + self.total_spent

    def __repr__(self) -> str:
        return (
            f"<CompanyRevenue available={self.available_budget} "
            f"spent={self.total_spent} revenue={self.current_revenue} v{self.version}>"
        )
