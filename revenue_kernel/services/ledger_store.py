"""
LedgerStore -- durable home of the CompanyRevenue singleton and the
append-only RevenueTransaction history.

Responsibility:
    Seeds and reads the singleton, locks it for a balance mutation, and
    appends ledger rows.  This is the only code that INSERTs into
    ``company_revenue`` or ``revenue_transactions``.

Architecture position:
    Kernel > Services.  Used by BalanceEngine (inside the write gate) and by
    the admin CLI for initialization.  Flush-only: never commits.

Invariants enforced:
    - Singleton: initialize() is idempotent; a concurrent second seed hits
      the primary-key / CHECK constraint and re-reads the winner's row.
    - Append-only: append_transaction() refuses anything but a new,
      transient row; existing rows are protected by the immutability
      listeners in db/immutability.py.
    - Ordering: created_date comes from the injected clock and ids are
      store-assigned, so (created_date, id) is the replay order.

Failure modes:
    - NotInitializedError from get_current_revenue / lock_current_revenue
      when no singleton exists.
    - ValueError from append_transaction for an already-persisted row, and
      from list_transactions when the page is larger than max_page_size.
    - SQLAlchemyError propagates; the owning unit of work rolls back.
"""

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from revenue_kernel.db.types import ZERO
from revenue_kernel.domain.clock import Clock
from revenue_kernel.domain.dtos import Pagination, TransactionFilter, TransactionRecord
from revenue_kernel.exceptions import NotInitializedError
from revenue_kernel.logging_config import get_logger
from revenue_kernel.models.company_revenue import SINGLETON_ID, CompanyRevenue
from revenue_kernel.models.revenue_transaction import RevenueTransaction
from revenue_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")

DEFAULT_MAX_PAGE_SIZE = 500


class LedgerStore(BaseService):
    """
    Persistence for the revenue ledger.

    Contract:
        All writes are flushed into the caller's transaction.  The caller
        (BalanceEngine, module service, CLI) commits or rolls back.

    Non-goals:
        - Does NOT validate balances; BalanceEngine does.
        - Does NOT compute aggregates; see LedgerSelector.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ):
        super().__init__(session, clock)
        self.max_page_size = max_page_size

    def initialize(self, actor: str) -> CompanyRevenue:
        """
        Seed a zeroed CompanyRevenue singleton if none exists.

        Postconditions:
            Exactly one singleton row is visible in this session.  An
            existing row is returned untouched.
        """
        existing = self.session.get(CompanyRevenue, SINGLETON_ID)
        if existing is not None:
            return existing

        savepoint = self.session.begin_nested()
        try:
            row = CompanyRevenue(
                id=SINGLETON_ID,
                current_revenue=ZERO,
                available_budget=ZERO,
                total_spent=ZERO,
                last_updated=self.clock.now(),
                updated_by=actor,
                update_reason="Ledger initialized",
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another session seeded the singleton first
            savepoint.rollback()
            logger.debug("ledger_initialize_race", extra={"actor": actor})
            return self.get_current_revenue()

        logger.info("ledger_initialized", extra={"actor": actor})
        return row

    def get_current_revenue(self) -> CompanyRevenue:
        """
        Return the singleton as currently visible to this session.

        Raises:
            NotInitializedError: if the ledger has not been seeded.
        """
        row = self.session.execute(
            select(CompanyRevenue).where(CompanyRevenue.id == SINGLETON_ID)
        ).scalar_one_or_none()
        if row is None:
            raise NotInitializedError()
        return row

    def lock_current_revenue(self) -> CompanyRevenue:
        """
        Re-read the singleton with ``SELECT ... FOR UPDATE``.

        The row lock is held until the surrounding transaction ends.  On
        SQLite the clause is not emitted; the balance gate and SQLite's
        writer lock serialize instead.  ``populate_existing`` discards any
        stale copy cached in the identity map.
        """
        row = self.session.execute(
            select(CompanyRevenue)
            .where(CompanyRevenue.id == SINGLETON_ID)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise NotInitializedError()
        return row

    def append_transaction(self, transaction: RevenueTransaction) -> RevenueTransaction:
        """
        Append a new ledger row.

        Preconditions:
            ``transaction`` is transient (never added to a session).
        Postconditions:
            ``created_date`` is stamped from the clock and ``id`` assigned.
        """
        state = inspect(transaction)
        if not state.transient:
            raise ValueError(
                f"Only new ledger rows can be appended, got {transaction!r}"
            )
        transaction.created_date = self.clock.now()
        self.session.add(transaction)
        self.session.flush()
        logger.debug(
            "ledger_transaction_appended",
            extra={
                "transaction_id": transaction.id,
                "transaction_type": transaction.transaction_type,
                "direction": transaction.direction,
                "amount": transaction.amount,
                "balance_after": transaction.balance_after,
            },
        )
        return transaction

    def list_transactions(
        self,
        filter: TransactionFilter | None = None,
        pagination: Pagination | None = None,
    ) -> list[TransactionRecord]:
        """Ledger rows in replay order, filtered and paged."""
        pagination = pagination or Pagination(limit=self.max_page_size)
        if pagination.limit > self.max_page_size:
            raise ValueError(
                f"Pagination limit {pagination.limit} exceeds maximum {self.max_page_size}"
            )
        from revenue_kernel.selectors.ledger_selector import LedgerSelector

        return LedgerSelector(self.session).list_transactions(filter, pagination)
