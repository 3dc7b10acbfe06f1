"""
ORM-Level Immutability Enforcement for the revenue ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

The ledger's history must never be edited.  A cancelled order is undone by a
NEW restore transaction, not by changing or deleting the deduction it
reverses.  If a bug (or an impatient operator with a session) could UPDATE a
RevenueTransaction, the ledger-replay invariant would silently break.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are sent:

    session.flush()
         |
         v
    [before_update] --> _check_revenue_transaction_update --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_revenue_transaction_delete --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush is aborted and the database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable          | Why
--------------------|-------------------------|-----------------------------------
RevenueTransaction  | ALWAYS (from creation)  | The ledger is append-only

Module-owned entities (ProductRequest cost fields after approval) register
their own listeners next to their ORM definitions.

===============================================================================
USAGE
===============================================================================

Called once at startup:

    from revenue_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from revenue_kernel.exceptions import ImmutabilityViolationError
from revenue_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_revenue_transaction_update(mapper, connection, target):
    """Prevent any updates to RevenueTransaction rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "append_only",
            "entity_type": "RevenueTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="RevenueTransaction",
        entity_id=str(target.id),
        reason="Ledger transactions are immutable and cannot be modified",
    )


def _check_revenue_transaction_delete(mapper, connection, target):
    """Prevent deletion of RevenueTransaction rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "append_only",
            "entity_type": "RevenueTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="RevenueTransaction",
        entity_id=str(target.id),
        reason="Ledger transactions cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register ORM event listeners that enforce ledger immutability.

    Idempotent: listeners already registered are not added twice.
    """
    from revenue_kernel.models.revenue_transaction import RevenueTransaction

    if not event.contains(RevenueTransaction, "before_update", _check_revenue_transaction_update):
        event.listen(RevenueTransaction, "before_update", _check_revenue_transaction_update)
    if not event.contains(RevenueTransaction, "before_delete", _check_revenue_transaction_delete):
        event.listen(RevenueTransaction, "before_delete", _check_revenue_transaction_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from revenue_kernel.models.revenue_transaction import RevenueTransaction

    _safe_remove_listener(RevenueTransaction, "before_update", _check_revenue_transaction_update)
    _safe_remove_listener(RevenueTransaction, "before_delete", _check_revenue_transaction_delete)
