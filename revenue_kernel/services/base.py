"""
BaseService -- abstract base for kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    write-side services.  Store-level services (LedgerStore) use
    ``session.flush()`` only; the Balance Engine and module services own the
    unit of work through ``unit_of_work()``, the only place that calls
    ``commit()`` / ``rollback()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - A store-level subclass that commits on its own would split a balance
      mutation from its ledger row; the atomicity of deduct/restore/adjust
      depends on the flush-only contract.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import OptimisticLockError, StoreFailureError
from revenue_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` and an optional ``Clock`` from the
        caller.  The session is shared with collaborators so that one commit
        covers every row touched by an operation.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()


@contextmanager
def unit_of_work(
    session: Session,
    operation: str,
    *,
    commit: bool = True,
    entity_type: str = "CompanyRevenue",
    entity_id: object = None,
) -> Iterator[Session]:
    """
    Run one database transaction: commit on success, roll back on failure.

    With ``commit=False`` the block is only flushed and the caller's own
    unit of work decides; errors are still translated but nothing is rolled
    back here.

    Raises:
        OptimisticLockError: a versioned row was changed concurrently.
        StoreFailureError: any other SQLAlchemy failure.
    """
    try:
        yield session
        if commit:
            session.commit()
        else:
            session.flush()
    except StaleDataError as exc:
        if commit:
            session.rollback()
        logger.warning(
            "optimistic_lock_conflict",
            extra={"operation": operation, "entity_type": entity_type},
        )
        raise OptimisticLockError(entity_type, str(entity_id), operation) from exc
    except SQLAlchemyError as exc:
        if commit:
            session.rollback()
        logger.error(
            "store_failure",
            extra={"operation": operation, "error": type(exc).__name__},
        )
        raise StoreFailureError(operation, type(exc).__name__) from exc
    except Exception as exc:
        if commit:
            session.rollback()
            logger.info(
                "unit_of_work_rolled_back",
                extra={
                    "operation": operation,
                    "error_code": getattr(exc, "code", type(exc).__name__),
                },
            )
        raise
