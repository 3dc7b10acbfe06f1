"""
BalanceGate -- the single-writer chokepoint for balance mutations.

Responsibility:
    Serializes every read-check-write of the CompanyRevenue singleton within
    the process.  The gate is reentrant so that a module service can hold it
    for its whole unit of work while the Balance Engine it calls acquires it
    again.

Architecture position:
    Kernel > Services.  Owned by BalanceEngine; module services reach it
    through ``BalanceEngine.gate``.

Invariants enforced:
    - At most one thread is inside the gate at a time.
    - Acquisition is bounded by ``timeout_seconds``; on timeout no state has
      been touched.

Failure modes:
    - LockTimeoutError when the gate is not acquired in time.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from revenue_kernel.exceptions import LockTimeoutError
from revenue_kernel.logging_config import get_logger

logger = get_logger("services.balance_gate")

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


class BalanceGate:
    """Reentrant, timeout-bounded lock around balance mutations."""

    def __init__(self, timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._lock = threading.RLock()

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """
        Hold the gate for the duration of the ``with`` block.

        Raises:
            LockTimeoutError: if the gate is busy for longer than the timeout.
        """
        if not self._lock.acquire(timeout=self.timeout_seconds):
            logger.warning(
                "balance_gate_timeout",
                extra={
                    "operation": operation,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise LockTimeoutError(operation, self.timeout_seconds)
        try:
            yield
        finally:
            self._lock.release()


_default_gate: BalanceGate | None = None
_default_gate_guard = threading.Lock()


def get_default_gate(timeout_seconds: float | None = None) -> BalanceGate:
    """
    Return the process-wide gate, creating it on first use.

    ``timeout_seconds`` updates the shared gate's timeout when given.
    """
    global _default_gate
    with _default_gate_guard:
        if _default_gate is None:
            _default_gate = BalanceGate(
                timeout_seconds if timeout_seconds is not None
                else DEFAULT_LOCK_TIMEOUT_SECONDS
            )
        elif timeout_seconds is not None:
            _default_gate.timeout_seconds = timeout_seconds
        return _default_gate
