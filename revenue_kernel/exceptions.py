"""
Typed Exception Hierarchy for the Revenue Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (UI layer, HTTP layer, admin scripts) must be able to
tell "not enough budget" from "request already approved" from "database is
down" without parsing message strings.  Every error therefore:

  1. Has its own exception CLASS (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.approve(request_id, approved_by="manager")
    except Exception as e:
        if "budget" in str(e):  # FRAGILE - message might change
            show_budget_warning()

Example - RIGHT way:
    try:
        service.approve(request_id, approved_by="manager")
    except InsufficientFundsError as e:
        show_budget_warning(available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RevenueLedgerError:

    RevenueLedgerError (base)
    |
    +-- LedgerError
    |   +-- NotInitializedError
    |   +-- InsufficientFundsError
    |   +-- InvalidAdjustmentError
    |   +-- RestoreExceedsSpentError
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- MissingReasonError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- ProductNotFoundError
    |
    +-- ImmutabilityViolationError
    |
    +-- StoreFailureError
        +-- LockTimeoutError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------------
Ledger       | LEDGER_NOT_INITIALIZED    | No CompanyRevenue row has been seeded
             | INSUFFICIENT_FUNDS        | Deduction larger than available budget
             | INVALID_ADJUSTMENT        | Adjustment would go negative / is empty
             | RESTORE_EXCEEDS_SPENT     | Strict mode: restore larger than spent
-------------|---------------------------|------------------------------------------
Validation   | INVALID_AMOUNT            | Amount is zero, negative, or not Decimal
             | INVALID_QUANTITY          | Requested quantity is not a positive int
             | MISSING_REASON            | Mandatory reason/justification is empty
-------------|---------------------------|------------------------------------------
Workflow     | INVALID_TRANSITION        | Action not legal from the current state
-------------|---------------------------|------------------------------------------
Lookup       | REQUEST_NOT_FOUND         | Unknown product request id
             | PRODUCT_NOT_FOUND         | Product catalog has no such product
-------------|---------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Update/delete of an append-only record
-------------|---------------------------|------------------------------------------
Store        | STORE_FAILURE             | Underlying persistence error
             | LOCK_TIMEOUT              | Balance write gate not acquired in time
             | OPTIMISTIC_LOCK_CONFLICT  | Row changed by a concurrent transaction

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation, workflow and ledger errors are caller errors.  They are never
   retried internally and never logged-and-swallowed inside the core.

2. StoreFailureError is always surfaced.  The unit of work that raised it
   has already been rolled back, so the ledger is exactly as it was before
   the call.  Retry policy, if any, belongs to the caller.

===============================================================================
"""

from decimal import Decimal


class RevenueLedgerError(Exception):
    """
    Base exception for all revenue ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REVENUE_LEDGER_ERROR"


# Ledger-related exceptions


class LedgerError(RevenueLedgerError):
    """Base exception for balance and ledger errors."""

    code: str = "LEDGER_ERROR"


class NotInitializedError(LedgerError):
    """The CompanyRevenue singleton row does not exist yet."""

    code: str = "LEDGER_NOT_INITIALIZED"

    def __init__(self):
        super().__init__(
            "Company revenue ledger is not initialized; seed the singleton first"
        )


class InsufficientFundsError(LedgerError):
    """Deduction requested more than the available budget."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient budget: available {available}, requested {requested}"
        )


class InvalidAdjustmentError(LedgerError):
    """Administrative adjustment is empty or would break a ledger invariant."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid adjustment: {reason}")


class RestoreExceedsSpentError(LedgerError):
    """
    Restore amount is larger than the cumulative amount spent.

    Raised only when strict restore mode is enabled; otherwise the engine
    clamps total_spent at zero and logs the anomaly.
    """

    code: str = "RESTORE_EXCEEDS_SPENT"

    def __init__(self, amount: Decimal, total_spent: Decimal):
        self.amount = amount
        self.total_spent = total_spent
        super().__init__(
            f"Restore of {amount} exceeds total spent {total_spent}"
        )


# Validation exceptions


class ValidationError(RevenueLedgerError):
    """Base exception for caller input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Monetary amount is not a positive Decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str = "amount must be greater than zero"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class InvalidQuantityError(ValidationError):
    """Requested quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(
            f"Invalid quantity {quantity!r}: must be a positive integer"
        )


class MissingReasonError(ValidationError):
    """A mandatory reason or justification was empty."""

    code: str = "MISSING_REASON"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"A non-empty {field} is required")


# Workflow exceptions


class WorkflowError(RevenueLedgerError):
    """Base exception for request workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested action is not legal from the request's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, from_state: str, action: str, request_id: int | None = None):
        self.from_state = from_state
        self.action = action
        self.request_id = request_id
        super().__init__(
            f"Cannot {action} request {request_id} in state {from_state}"
        )


# Lookup exceptions


class NotFoundError(RevenueLedgerError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Product request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Product request not found: {request_id}")


class ProductNotFoundError(NotFoundError):
    """Product catalog has no product with the given ID."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


# Immutability exceptions


class ImmutabilityViolationError(RevenueLedgerError):
    """
    Attempted to modify or delete an append-only record.

    RevenueTransaction rows are immutable from creation; the cost fields of a
    ProductRequest are immutable once it has been approved.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Store exceptions


class StoreFailureError(RevenueLedgerError):
    """
    Underlying persistence failed.

    The unit of work has been rolled back before this is raised.  The
    original driver exception is chained as __cause__.
    """

    code: str = "STORE_FAILURE"

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Store failure during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class LockTimeoutError(StoreFailureError):
    """The balance write gate could not be acquired within the timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            operation,
            f"balance gate not acquired within {timeout_seconds}s",
        )


class OptimisticLockError(StoreFailureError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, operation: str = "flush"):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            operation,
            f"{entity_type} {entity_id} was modified by another transaction",
        )
