"""
Module: revenue_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: filtered transaction listings,
    full-ledger replay, reconciliation checks, and the dashboard statistics
    (utilization band, recent and monthly spending).
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos.py and selectors/base.py.

Invariants enforced:
    - Ledger replay: replay() walks every row in (created_date, id) order from
      a zero baseline and compares the running balance with each stored
      balance_after.
    - Reconciliation: check_reconciliation() verifies the singleton's own
      equation and that it agrees with the replayed balance.

Failure modes:
    - NotInitializedError from snapshot / replay / check_reconciliation /
      statistics when the singleton is missing.
    - Listings and aggregates over an empty ledger return empty / zero.

Audit relevance:
    replay() and check_reconciliation() are what an auditor runs to prove
    the running balance was never edited outside the Balance Engine.
"""

from calendar import monthrange
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select

from revenue_kernel.db.types import ZERO, round_money
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
    as_utc,
)
from revenue_kernel.exceptions import NotInitializedError
from revenue_kernel.models.company_revenue import SINGLETON_ID, CompanyRevenue
from revenue_kernel.models.revenue_transaction import (
    LedgerDirection,
    RevenueTransaction,
    TransactionType,
)
from revenue_kernel.selectors.base import BaseSelector

RECENT_SPENDING_DAYS = 30

_REPLAY_BATCH_SIZE = 1000


class LedgerSelector(BaseSelector):
    """
    Read-side queries over the revenue ledger.

    Contract:
        All methods are read-only and return frozen DTOs.
    """

    def snapshot(self) -> RevenueSnapshot:
        """Current singleton values."""
        row = self.session.get(CompanyRevenue, SINGLETON_ID)
        if row is None:
            raise NotInitializedError()
        return RevenueSnapshot.from_model(row)

    def list_transactions(
        self,
        filter: TransactionFilter | None = None,
        pagination: Pagination | None = None,
    ) -> list[TransactionRecord]:
        """
        Ledger rows ascending by created_date, ties broken by id.

        Date range is inclusive of ``start`` and exclusive of ``end``.
        """
        stmt = self._filtered(filter or TransactionFilter()).order_by(
            RevenueTransaction.created_date, RevenueTransaction.id
        )
        if pagination is not None:
            stmt = stmt.offset(pagination.offset).limit(pagination.limit)
        rows = self.session.execute(stmt).scalars().all()
        return [TransactionRecord.from_model(row) for row in rows]

    def transactions_for_request(self, request_id: int) -> list[TransactionRecord]:
        """Every ledger row linked to one product request, in order."""
        return self.list_transactions(TransactionFilter(product_request_id=request_id))

    def count_transactions(self, filter: TransactionFilter | None = None) -> int:
        stmt = self._filtered(filter or TransactionFilter()).with_only_columns(
            func.count(RevenueTransaction.id)
        )
        return self.session.execute(stmt).scalar_one()

    def replay(self) -> ReplayReport:
        """
        Recompute every balance_after from zero.

        Returns:
            ReplayReport listing each row whose stored balance disagrees with
            the running total.
        """
        available = self.snapshot().available_budget
        running = ZERO
        count = 0
        mismatches: list[ReplayMismatch] = []

        stmt = (
            select(RevenueTransaction)
            .order_by(RevenueTransaction.created_date, RevenueTransaction.id)
            .execution_options(yield_per=_REPLAY_BATCH_SIZE)
        )
        for row in self.session.execute(stmt).scalars():
            count += 1
            if row.direction == LedgerDirection.DEBIT.value:
                running -= row.amount
            else:
                running += row.amount
            if running != row.balance_after:
                mismatches.append(
                    ReplayMismatch(
                        transaction_id=row.id,
                        stored_balance_after=row.balance_after,
                        replayed_balance_after=running,
                    )
                )

        return ReplayReport(
            transaction_count=count,
            final_balance=running,
            available_budget=available,
            mismatches=tuple(mismatches),
        )

    def check_reconciliation(self) -> ReconciliationReport:
        """Check the singleton against its own equation and the ledger."""
        snapshot = self.snapshot()
        replay = self.replay()
        violations: list[str] = []

        if not snapshot.is_reconciled:
            violations.append(
                f"current_revenue {snapshot.current_revenue} != available_budget "
                f"{snapshot.available_budget} + total_spent {snapshot.total_spent}"
            )
        if snapshot.available_budget < 0:
            violations.append(f"available_budget {snapshot.available_budget} is negative")
        if snapshot.total_spent < 0:
            violations.append(f"total_spent {snapshot.total_spent} is negative")
        if replay.final_balance != snapshot.available_budget:
            violations.append(
                f"replayed balance {replay.final_balance} != available_budget "
                f"{snapshot.available_budget}"
            )
        for mismatch in replay.mismatches:
            violations.append(
                f"transaction {mismatch.transaction_id} balance_after "
                f"{mismatch.stored_balance_after} != replayed "
                f"{mismatch.replayed_balance_after}"
            )

        return ReconciliationReport(
            snapshot=snapshot,
            replayed_balance=replay.final_balance,
            violations=tuple(violations),
        )

    def statistics(self, as_of: datetime) -> RevenueStatistics:
        """
        Dashboard figures as of ``as_of``.

        Utilization is total_spent / current_revenue * 100 to two places
        (zero when there is no revenue).  Recent spending sums ORDER_PLACED
        rows in the 30 days up to and including ``as_of``.
        """
        as_of = as_utc(as_of)
        snapshot = self.snapshot()

        if snapshot.current_revenue > 0:
            utilization = round_money(
                snapshot.total_spent / snapshot.current_revenue * Decimal(100)
            )
        else:
            utilization = ZERO

        recent = self._order_total(
            as_of - timedelta(days=RECENT_SPENDING_DAYS),
            as_of + timedelta(microseconds=1),
        )

        return RevenueStatistics(
            as_of=as_of,
            current_revenue=snapshot.current_revenue,
            available_budget=snapshot.available_budget,
            total_spent=snapshot.total_spent,
            utilization_percentage=utilization,
            budget_status=BudgetStatus.for_utilization(utilization),
            transaction_count=self.count_transactions(),
            last_30_days_spending=recent,
        )

    def monthly_spending(self, as_of: datetime) -> MonthlySpending:
        """ORDER_PLACED totals for the calendar month of ``as_of`` and the one before."""
        as_of = as_utc(as_of)
        month_start = as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        days = monthrange(month_start.year, month_start.month)[1]
        next_month_start = month_start + timedelta(days=days)
        previous_month_start = (month_start - timedelta(days=1)).replace(day=1)

        return MonthlySpending(
            year=month_start.year,
            month=month_start.month,
            current_month=self._order_total(month_start, next_month_start),
            previous_month=self._order_total(previous_month_start, month_start),
        )

    # ------------------------------------------------------------------

    def _order_total(self, start: datetime, end: datetime) -> Decimal:
        stmt = select(func.sum(RevenueTransaction.amount)).where(
            RevenueTransaction.transaction_type == TransactionType.ORDER_PLACED.value,
            RevenueTransaction.created_date >= start,
            RevenueTransaction.created_date < end,
        )
        return self.session.execute(stmt).scalar_one() or ZERO

    @staticmethod
    def _filtered(criteria: TransactionFilter):
        stmt = select(RevenueTransaction)
        if criteria.transaction_types:
            stmt = stmt.where(
                RevenueTransaction.transaction_type.in_(criteria.transaction_types)
            )
        if criteria.direction is not None:
            stmt = stmt.where(RevenueTransaction.direction == criteria.direction)
        if criteria.start is not None:
            stmt = stmt.where(RevenueTransaction.created_date >= as_utc(criteria.start))
        if criteria.end is not None:
            stmt = stmt.where(RevenueTransaction.created_date < as_utc(criteria.end))
        if criteria.product_request_id is not None:
            stmt = stmt.where(
                RevenueTransaction.product_request_id == criteria.product_request_id
            )
        if criteria.created_by is not None:
            stmt = stmt.where(RevenueTransaction.created_by == criteria.created_by)
        return stmt
