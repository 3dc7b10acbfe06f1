"""
Product Request Service (``revenue_modules.product_requests.service``).

Responsibility
--------------
Drives product requests through ``PRODUCT_REQUEST_WORKFLOW``: create,
approve, reject, receive, cancel, plus amend / delete while Pending and the
read helpers ``get`` / ``list_requests``.  Approval deducts the request's
cost from the company budget; cancelling an approved request restores it.

Architecture position
---------------------
**Modules layer** -- the sole public entry point for product requests.
Calls ``revenue_kernel.services.balance_engine.BalanceEngine`` for every
money movement; never touches ``CompanyRevenue`` directly.

Invariants enforced
-------------------
* Every public mutating method owns the unit of work (commit on success,
  rollback on any failure).
* The request status change and its ledger row commit together: the
  Balance Engine runs with ``auto_commit=False`` inside this service's
  transaction.
* Money-moving transitions hold the balance gate for the whole unit of work
  and re-read the request inside it, so a request is deducted at most once
  and restored at most once.
* Illegal transitions are refused by the workflow before any write.

Failure modes
-------------
* ``InvalidQuantityError`` / ``ProductNotFoundError`` on create.
* ``InvalidTransitionError`` for an action not legal in the current state.
* ``InsufficientFundsError`` on approve; the request stays Pending.
* ``MissingReasonError`` on reject without a reason.
* ``RequestNotFoundError`` for an unknown id.
* ``OptimisticLockError`` when a concurrent writer changed the request.
* ``LockTimeoutError`` / ``StoreFailureError`` after rollback.

Audit relevance
---------------
Each transition stamps actor and time on the request, appends a tagged
note (``[APPROVED] ...``), and logs a structured event carrying the request
id and, for money-moving transitions, the ledger transaction id.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from revenue_kernel.db.types import round_money
from revenue_kernel.domain.clock import Clock
from revenue_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    InvalidTransitionError,
    MissingReasonError,
    ProductNotFoundError,
    RequestNotFoundError,
)
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_kernel.models.revenue_transaction import TransactionType
from revenue_kernel.services.balance_engine import BalanceEngine
from revenue_kernel.services.base import unit_of_work
from revenue_modules.product_requests.collaborators import (
    InventoryNotifier,
    NullInventoryNotifier,
    ProductCatalog,
)
from revenue_modules.product_requests.models import (
    ProductInfo,
    ProductRequestView,
    RequestAction,
    RequestStatus,
)
from revenue_modules.product_requests.orm import ProductRequestModel
from revenue_modules.product_requests.workflows import PRODUCT_REQUEST_WORKFLOW

logger = get_logger("modules.product_requests.service")


def _validate_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


class ProductRequestService:
    """
    Orchestrates the product request lifecycle.

    Contract
    --------
    * Every method takes an explicit actor and returns a frozen
      ``ProductRequestView`` or raises a typed error.
    * The injected ``BalanceEngine`` must share this service's session and
      run with ``auto_commit=False``; one is built that way when omitted.

    Non-goals
    ---------
    * Does NOT price products; the catalog does.
    * Does NOT retry on conflicts; the caller decides.
    """

    def __init__(
        self,
        session: Session,
        catalog: ProductCatalog,
        balance_engine: BalanceEngine | None = None,
        inventory: InventoryNotifier | None = None,
        clock: Clock | None = None,
    ):
        if balance_engine is None:
            balance_engine = BalanceEngine(session, clock=clock, auto_commit=False)
        elif balance_engine.session is not session:
            raise ValueError("BalanceEngine must share the service's session")
        elif balance_engine.auto_commit:
            raise ValueError("BalanceEngine must be built with auto_commit=False")

        self._session = session
        self._catalog = catalog
        self._engine = balance_engine
        self._inventory = inventory or NullInventoryNotifier()
        self._clock = clock or balance_engine.clock

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        product_id: int,
        quantity: int,
        requested_by: str,
        notes: str | None = None,
    ) -> ProductRequestView:
        """Record a new Pending request.  No ledger effect."""
        quantity = _validate_quantity(quantity)
        self._product(product_id)

        with LogContext.bind(actor=requested_by):
            with unit_of_work(self._session, "create_request", entity_type="ProductRequest"):
                request = ProductRequestModel(
                    product_id=product_id,
                    requested_quantity=quantity,
                    requested_by=requested_by,
                    request_status=PRODUCT_REQUEST_WORKFLOW.initial_state,
                    request_date=self._clock.now(),
                    notes=notes.strip() if notes and notes.strip() else None,
                    created_by=requested_by,
                )
                self._session.add(request)
                self._session.flush()

            logger.info(
                "request_created",
                extra={
                    "request_id": request.id,
                    "product_id": product_id,
                    "quantity": quantity,
                },
            )
        return request.to_dto()

    # =========================================================================
    # Money-moving transitions
    # =========================================================================

    def approve(
        self,
        request_id: int,
        approved_by: str,
        notes: str | None = None,
    ) -> ProductRequestView:
        """
        Pending -> Approved, deducting quantity * unit price.

        Raises:
            InvalidTransitionError: request is not Pending.
            InsufficientFundsError: available budget is below the cost.
        """
        with LogContext.bind(actor=approved_by, request_id=request_id):
            with self._engine.gate.hold("approve"), self._unit_of_work("approve", request_id):
                request = self._load(request_id, for_update=True)
                transition = PRODUCT_REQUEST_WORKFLOW.resolve(
                    request.request_status, RequestAction.APPROVE.value, request_id
                )
                product = self._product(request.product_id)
                total_cost = self._total_cost(product, request.requested_quantity)

                tx = self._engine.deduct(
                    total_cost,
                    reason=f"Order approved: request #{request_id}",
                    actor=approved_by,
                    request_id=request_id,
                    transaction_type=TransactionType.ORDER_PLACED.value,
                )

                request.total_cost = total_cost
                request.request_status = transition.to_state
                request.approval_date = self._clock.now()
                request.approved_by = approved_by
                request.append_note("APPROVED", notes)

            logger.info(
                "request_approved",
                extra={
                    "transaction_id": tx.id,
                    "total_cost": total_cost,
                    "available_budget": tx.balance_after,
                },
            )
        return request.to_dto()

    def cancel(
        self,
        request_id: int,
        cancelled_by: str,
        notes: str | None = None,
    ) -> ProductRequestView:
        """
        Pending/Approved -> Cancelled.  From Approved the cost is restored.

        Raises:
            InvalidTransitionError: request is already terminal.
        """
        with LogContext.bind(actor=cancelled_by, request_id=request_id):
            with self._engine.gate.hold("cancel"), self._unit_of_work("cancel", request_id):
                request = self._load(request_id, for_update=True)
                transition = PRODUCT_REQUEST_WORKFLOW.resolve(
                    request.request_status, RequestAction.CANCEL.value, request_id
                )

                tx = None
                if transition.moves_funds:
                    tx = self._engine.restore(
                        request.total_cost,
                        reason=f"Order cancelled: request #{request_id}",
                        actor=cancelled_by,
                        request_id=request_id,
                        transaction_type=TransactionType.ORDER_CANCELLED.value,
                    )

                request.request_status = transition.to_state
                request.cancelled_date = self._clock.now()
                request.cancelled_by = cancelled_by
                request.append_note("CANCELLED", notes)

            logger.info(
                "request_cancelled",
                extra={
                    "from_state": transition.from_state,
                    "transaction_id": tx.id if tx else None,
                    "restored": request.total_cost if tx else None,
                },
            )
        return request.to_dto()

    # =========================================================================
    # Non-money transitions
    # =========================================================================

    def reject(
        self,
        request_id: int,
        rejected_by: str,
        reason: str,
    ) -> ProductRequestView:
        """Pending -> Rejected.  No ledger effect."""
        if not reason or not reason.strip():
            raise MissingReasonError("reason")

        with LogContext.bind(actor=rejected_by, request_id=request_id):
            with self._unit_of_work("reject", request_id):
                request = self._load(request_id)
                transition = PRODUCT_REQUEST_WORKFLOW.resolve(
                    request.request_status, RequestAction.REJECT.value, request_id
                )
                request.request_status = transition.to_state
                request.rejected_date = self._clock.now()
                request.rejected_by = rejected_by
                request.append_note("REJECTED", reason)

            logger.info("request_rejected", extra={"reason": reason.strip()})
        return request.to_dto()

    def receive(
        self,
        request_id: int,
        received_by: str,
        notes: str | None = None,
    ) -> ProductRequestView:
        """
        Approved -> Received.  No ledger change.

        The inventory collaborator is told after commit; its failure is
        logged and does not undo the receipt.
        """
        with LogContext.bind(actor=received_by, request_id=request_id):
            with self._unit_of_work("receive", request_id):
                request = self._load(request_id)
                transition = PRODUCT_REQUEST_WORKFLOW.resolve(
                    request.request_status, RequestAction.RECEIVE.value, request_id
                )
                request.request_status = transition.to_state
                request.received_date = self._clock.now()
                request.received_by = received_by
                request.append_note("RECEIVED", notes)

            view = request.to_dto()
            logger.info("request_received", extra={"quantity": view.requested_quantity})

            try:
                self._inventory.notify_received(view)
            except Exception:
                logger.exception(
                    "inventory_notification_failed",
                    extra={"product_id": view.product_id},
                )
        return view

    # =========================================================================
    # Pending-only maintenance
    # =========================================================================

    def amend(
        self,
        request_id: int,
        quantity: int | None = None,
        notes: str | None = None,
        amended_by: str | None = None,
    ) -> ProductRequestView:
        """Change quantity and/or notes of a Pending request."""
        if quantity is not None:
            quantity = _validate_quantity(quantity)

        with LogContext.bind(actor=amended_by, request_id=request_id):
            with self._unit_of_work("amend", request_id):
                request = self._load(request_id)
                PRODUCT_REQUEST_WORKFLOW.resolve(
                    request.request_status, RequestAction.AMEND.value, request_id
                )
                if quantity is not None:
                    request.requested_quantity = quantity
                if notes is not None:
                    request.notes = notes.strip() or None

            logger.info(
                "request_amended",
                extra={"quantity": request.requested_quantity},
            )
        return request.to_dto()

    def delete(self, request_id: int, deleted_by: str | None = None) -> None:
        """Remove a Pending request.  No ledger effect."""
        with LogContext.bind(actor=deleted_by, request_id=request_id):
            with self._unit_of_work("delete", request_id):
                request = self._load(request_id)
                if request.request_status != PRODUCT_REQUEST_WORKFLOW.initial_state:
                    raise InvalidTransitionError(
                        request.request_status, "delete", request_id
                    )
                self._session.delete(request)

            logger.info("request_deleted")

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, request_id: int) -> ProductRequestView:
        return self._load(request_id).to_dto()

    def list_requests(
        self,
        status: str | RequestStatus | None = None,
        requested_by: str | None = None,
    ) -> list[ProductRequestView]:
        """Requests ordered by request date then id; filters are case-insensitive."""
        stmt = select(ProductRequestModel)
        if status is not None:
            value = status.value if isinstance(status, RequestStatus) else status
            stmt = stmt.where(
                func.lower(ProductRequestModel.request_status) == value.lower()
            )
        if requested_by is not None:
            stmt = stmt.where(
                func.lower(ProductRequestModel.requested_by) == requested_by.lower()
            )
        stmt = stmt.order_by(ProductRequestModel.request_date, ProductRequestModel.id)
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _unit_of_work(self, operation: str, request_id: int):
        return unit_of_work(
            self._session,
            operation,
            entity_type="ProductRequest",
            entity_id=request_id,
        )

    def _load(self, request_id: int, for_update: bool = False) -> ProductRequestModel:
        stmt = (
            select(ProductRequestModel)
            .where(ProductRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        request = self._session.execute(stmt).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    def _product(self, product_id: int) -> ProductInfo:
        product = self._catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    @staticmethod
    def _total_cost(product: ProductInfo, quantity: int) -> Decimal:
        """quantity * unit_price, rounded once.  The catalog price is not pre-rounded."""
        unit_price = product.unit_price
        if isinstance(unit_price, bool) or not isinstance(unit_price, (Decimal, int)):
            raise InvalidAmountError(unit_price, "unit_price must be a Decimal or int")
        unit_price = Decimal(unit_price)
        if not unit_price.is_finite() or unit_price < 0:
            raise InvalidAmountError(unit_price, "unit_price must be finite and non-negative")
        return round_money(unit_price * quantity)
