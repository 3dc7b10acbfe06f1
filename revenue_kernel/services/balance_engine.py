"""
BalanceEngine -- the only path that moves money in the revenue ledger.

Responsibility:
    Validates and applies deductions, restores and administrative
    adjustments to the CompanyRevenue singleton, appending exactly one
    RevenueTransaction per mutation, atomically.

Architecture position:
    Kernel > Services.  Called by the product request workflow (approve /
    cancel) and by the admin CLI (adjust).  Uses LedgerStore for all
    persistence and BalanceGate for serialization.

Invariants enforced:
    - Reconciliation: current_revenue == available_budget + total_spent
      after every mutation (checked before flush).
    - available_budget >= 0: a deduction larger than the available budget
      is refused before any write.
    - Ledger replay: each appended row carries balance_after equal to the
      new available_budget and a direction matching the movement.
    - Single writer: every read-check-write runs inside the BalanceGate,
      and the gate is held until the unit of work commits.

Failure modes:
    - InvalidAmountError: amount is not a positive Decimal/int (floats are
      rejected outright).
    - InsufficientFundsError: deduction exceeds available_budget; nothing
      is written.
    - InvalidAdjustmentError / MissingReasonError: malformed adjustment.
    - RestoreExceedsSpentError: strict mode only.
    - LockTimeoutError, OptimisticLockError, StoreFailureError: the unit of
      work was rolled back.

Audit relevance:
    Every successful call logs balance_deducted / balance_restored /
    balance_adjusted with the amounts and the resulting balances.  A restore
    larger than total_spent logs restore_exceeds_total_spent at WARNING.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session

from revenue_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    MONEY_PRECISION,
    ZERO,
    round_money,
)
from revenue_kernel.domain.clock import Clock
from revenue_kernel.domain.dtos import TransactionRecord
from revenue_kernel.exceptions import (
    InsufficientFundsError,
    InvalidAdjustmentError,
    InvalidAmountError,
    MissingReasonError,
    RestoreExceedsSpentError,
)
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_kernel.models.company_revenue import SINGLETON_ID, CompanyRevenue
from revenue_kernel.models.revenue_transaction import (
    LedgerDirection,
    RevenueTransaction,
    TransactionType,
)
from revenue_kernel.services.balance_gate import BalanceGate, get_default_gate
from revenue_kernel.services.base import BaseService, unit_of_work
from revenue_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.balance_engine")


def coerce_money(value: object, field: str = "amount") -> Decimal:
    """
    Normalize a caller-supplied amount to a two-place Decimal.

    Accepts Decimal and int.  Floats, bools, strings, non-finite Decimals
    and amounts too large for a money column raise InvalidAmountError.
    """
    if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
        raise InvalidAmountError(
            value, f"{field} must be a Decimal or int, got {type(value).__name__}"
        )
    value = Decimal(value)
    if not value.is_finite():
        raise InvalidAmountError(value, f"{field} must be finite")
    if value.adjusted() >= MONEY_PRECISION - MONEY_DECIMAL_PLACES:
        raise InvalidAmountError(value, f"{field} exceeds the money column range")
    return round_money(value)


def _label(transaction_type: str | Enum) -> str:
    if isinstance(transaction_type, Enum):
        return transaction_type.value
    return transaction_type


class BalanceEngine(BaseService):
    """
    Applies balance mutations under the write gate.

    Contract:
        Each public method either commits exactly one singleton update plus
        one ledger row and returns the row as a TransactionRecord, or raises
        and leaves the ledger unchanged.

        With ``auto_commit=False`` the engine joins the caller's unit of
        work: it flushes instead of committing and the caller must hold
        ``engine.gate`` until it commits (the gate is reentrant).

    Non-goals:
        - Does NOT know about product requests beyond the optional
          ``request_id`` link stored on the ledger row.
    """

    def __init__(
        self,
        session: Session,
        store: LedgerStore | None = None,
        clock: Clock | None = None,
        gate: BalanceGate | None = None,
        strict_restore: bool = False,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock)
        self.store = store or LedgerStore(session, self.clock)
        self.gate = gate or get_default_gate()
        self.strict_restore = strict_restore
        self.auto_commit = auto_commit

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def deduct(
        self,
        amount: Decimal,
        reason: str,
        actor: str,
        request_id: int | None = None,
        transaction_type: str = TransactionType.ORDER_PLACED.value,
    ) -> TransactionRecord:
        """
        Spend ``amount`` from the available budget.

        Postconditions:
            available_budget -= amount; total_spent += amount; one debit
            row appended.

        Raises:
            InvalidAmountError: amount <= 0 or not a Decimal/int.
            InsufficientFundsError: available_budget < amount.
        """
        amount = self._positive_amount(amount)

        with LogContext.bind(actor=actor, request_id=request_id):
            with self.gate.hold("deduct"), self._unit_of_work("deduct"):
                revenue = self.store.lock_current_revenue()
                if revenue.available_budget < amount:
                    logger.warning(
                        "insufficient_funds",
                        extra={
                            "available": revenue.available_budget,
                            "requested": amount,
                        },
                    )
                    raise InsufficientFundsError(revenue.available_budget, amount)

                revenue.available_budget -= amount
                revenue.total_spent += amount
                tx = self._record(
                    revenue,
                    transaction_type=transaction_type,
                    direction=LedgerDirection.DEBIT,
                    amount=amount,
                    reason=reason,
                    actor=actor,
                    request_id=request_id,
                )

            logger.info(
                "balance_deducted",
                extra={
                    "transaction_id": tx.id,
                    "transaction_type": tx.transaction_type,
                    "amount": amount,
                    "available_budget": tx.balance_after,
                },
            )
        return TransactionRecord.from_model(tx)

    def restore(
        self,
        amount: Decimal,
        reason: str,
        actor: str,
        request_id: int | None = None,
        transaction_type: str = TransactionType.ORDER_CANCELLED.value,
    ) -> TransactionRecord:
        """
        Return ``amount`` to the available budget.

        Never blocked by funds.  total_spent is floored at zero; the excess
        is credited to current_revenue so the books still reconcile.  In
        strict mode the excess is an error instead.

        Raises:
            InvalidAmountError: amount <= 0 or not a Decimal/int.
            RestoreExceedsSpentError: strict mode and amount > total_spent.
        """
        amount = self._positive_amount(amount)

        with LogContext.bind(actor=actor, request_id=request_id):
            with self.gate.hold("restore"), self._unit_of_work("restore"):
                revenue = self.store.lock_current_revenue()
                spent = revenue.total_spent
                if amount > spent:
                    if self.strict_restore:
                        raise RestoreExceedsSpentError(amount, spent)
                    logger.warning(
                        "restore_exceeds_total_spent",
                        extra={"amount": amount, "total_spent": spent},
                    )
                    revenue.current_revenue += amount - spent
                    revenue.total_spent = ZERO
                else:
                    revenue.total_spent = spent - amount
                revenue.available_budget += amount
                tx = self._record(
                    revenue,
                    transaction_type=transaction_type,
                    direction=LedgerDirection.CREDIT,
                    amount=amount,
                    reason=reason,
                    actor=actor,
                    request_id=request_id,
                )

            logger.info(
                "balance_restored",
                extra={
                    "transaction_id": tx.id,
                    "transaction_type": tx.transaction_type,
                    "amount": amount,
                    "available_budget": tx.balance_after,
                },
            )
        return TransactionRecord.from_model(tx)

    def adjust(
        self,
        reason: str,
        actor: str,
        new_current_revenue: Decimal | None = None,
        budget_delta: Decimal | None = None,
        transaction_type: str = TransactionType.ADJUSTMENT.value,
    ) -> TransactionRecord:
        """
        Administrative change to the funds on hand.

        The net change is ``new_current_revenue - current_revenue`` (when
        given) plus ``budget_delta`` (when given).  It is applied to both
        current_revenue and available_budget; total_spent is unchanged.
        ``transaction_type`` defaults to ADJUSTMENT; the CLI records the
        first funding of a new ledger as OPENING_BALANCE.

        Raises:
            InvalidAdjustmentError: neither argument given, a negative
                target revenue, or a result below zero.
            MissingReasonError: blank reason.
            InvalidAmountError: a non-Decimal argument.
        """
        if new_current_revenue is None and budget_delta is None:
            raise InvalidAdjustmentError(
                "one of new_current_revenue or budget_delta is required"
            )
        if not reason or not reason.strip():
            raise MissingReasonError("reason")
        if new_current_revenue is not None:
            new_current_revenue = coerce_money(new_current_revenue, "new_current_revenue")
            if new_current_revenue < 0:
                raise InvalidAdjustmentError("new_current_revenue cannot be negative")
        if budget_delta is not None:
            budget_delta = coerce_money(budget_delta, "budget_delta")

        with LogContext.bind(actor=actor):
            with self.gate.hold("adjust"), self._unit_of_work("adjust"):
                revenue = self.store.lock_current_revenue()
                net = ZERO
                if new_current_revenue is not None:
                    net += new_current_revenue - revenue.current_revenue
                if budget_delta is not None:
                    net += budget_delta

                new_available = revenue.available_budget + net
                new_revenue = revenue.current_revenue + net
                if new_available < 0:
                    raise InvalidAdjustmentError(
                        f"available budget would become {new_available}"
                    )
                if new_revenue < 0:
                    raise InvalidAdjustmentError(
                        f"current revenue would become {new_revenue}"
                    )

                revenue.current_revenue = new_revenue
                revenue.available_budget = new_available
                tx = self._record(
                    revenue,
                    transaction_type=transaction_type,
                    direction=LedgerDirection.CREDIT if net >= 0 else LedgerDirection.DEBIT,
                    amount=abs(net),
                    reason=reason,
                    actor=actor,
                    request_id=None,
                )

            logger.info(
                "balance_adjusted",
                extra={
                    "transaction_id": tx.id,
                    "net_change": net,
                    "current_revenue": new_revenue,
                    "available_budget": new_available,
                },
            )
        return TransactionRecord.from_model(tx)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _unit_of_work(self, operation: str):
        return unit_of_work(
            self.session,
            operation,
            commit=self.auto_commit,
            entity_type="CompanyRevenue",
            entity_id=SINGLETON_ID,
        )

    @staticmethod
    def _positive_amount(amount: object) -> Decimal:
        value = coerce_money(amount)
        if value <= 0:
            raise InvalidAmountError(amount)
        return value

    def _record(
        self,
        revenue: CompanyRevenue,
        *,
        transaction_type: str,
        direction: LedgerDirection,
        amount: Decimal,
        reason: str,
        actor: str,
        request_id: int | None,
    ) -> RevenueTransaction:
        """Stamp audit metadata on the singleton and append the ledger row."""
        # INVARIANT: reconciliation holds before anything is flushed
        assert revenue.current_revenue == revenue.available_budget + revenue.total_spent, (
            "reconciliation violated: "
            f"{revenue.current_revenue} != {revenue.available_budget} + {revenue.total_spent}"
        )
        assert revenue.available_budget >= 0, "available_budget went negative"

        revenue.last_updated = self.clock.now()
        revenue.updated_by = actor
        revenue.update_reason = reason[:255] if reason else None

        return self.store.append_transaction(
            RevenueTransaction(
                transaction_type=_label(transaction_type),
                direction=direction.value,
                amount=amount,
                product_request_id=request_id,
                created_by=actor,
                description=reason[:255] if reason else None,
                balance_after=revenue.available_budget,
            )
        )
