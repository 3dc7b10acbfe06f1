"""
Concurrency tests for balance mutations.

Each worker thread gets its own session, as a real caller would; all
workers share one BalanceGate.  The gate, the locking re-read of the
singleton and its row version must together guarantee that:

- The available budget never goes negative under contention
- Exactly the affordable subset of concurrent approvals succeeds
- A request is deducted at most once however many approvers race
- Every committed balance change has exactly one ledger row
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from revenue_kernel.exceptions import (
    InsufficientFundsError,
    InvalidTransitionError,
    LockTimeoutError,
)
from revenue_kernel.selectors.ledger_selector import LedgerSelector
from revenue_kernel.services.balance_engine import BalanceEngine
from revenue_kernel.services.balance_gate import BalanceGate
from revenue_modules.product_requests import RequestStatus
from tests.conftest import CRATE, GADGET, TEST_ACTOR, build_request_service

pytestmark = pytest.mark.slow_locks


def _run_concurrently(n, fn):
    """Run fn(i) in n threads released together; return results or exceptions."""
    barrier = Barrier(n)

    def _worker(i):
        barrier.wait(timeout=10)
        try:
            return fn(i)
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(_worker, range(n)))


class TestConcurrentApprovals:

    def test_two_approvals_exceeding_budget(
        self, fund, request_service, session_factory, catalog, clock, gate
    ):
        """Two 600.00 approvals against 1000.00: exactly one wins."""
        fund(Decimal("1000.00"))
        first = request_service.create(CRATE.product_id, 1, requested_by="alice")
        second = request_service.create(CRATE.product_id, 1, requested_by="bob")
        ids = [first.id, second.id]

        def _approve(i):
            s = session_factory()
            try:
                service = build_request_service(s, catalog, clock, gate)
                return service.approve(ids[i], approved_by=f"manager_{i}")
            finally:
                s.close()

        results = _run_concurrently(2, _approve)

        approved = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, Exception)]
        assert len(approved) == 1
        assert len(refused) == 1
        assert isinstance(refused[0], InsufficientFundsError)

        verify = session_factory()
        try:
            selector = LedgerSelector(verify)
            snap = selector.snapshot()
            assert snap.available_budget == Decimal("400.00")
            assert snap.total_spent == Decimal("600.00")
            assert selector.check_reconciliation().is_reconciled
            assert selector.count_transactions() == 2
        finally:
            verify.close()

    def test_many_approvals_spend_exactly_the_affordable_amount(
        self, fund, request_service, session_factory, catalog, clock, gate
    ):
        fund(Decimal("1000.00"))
        ids = [
            request_service.create(GADGET.product_id, 3, requested_by=f"user_{i}").id
            for i in range(8)
        ]

        def _approve(i):
            s = session_factory()
            try:
                return build_request_service(s, catalog, clock, gate).approve(
                    ids[i], approved_by="manager"
                )
            finally:
                s.close()

        results = _run_concurrently(8, _approve)

        approved = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(approved) == 3
        assert all(isinstance(f, InsufficientFundsError) for f in failures)

        verify = session_factory()
        try:
            selector = LedgerSelector(verify)
            assert selector.snapshot().available_budget == Decimal("100.00")
            report = selector.replay()
            assert report.is_consistent
            assert report.transaction_count == 4
        finally:
            verify.close()

    def test_same_request_approved_once(
        self, fund, request_service, session_factory, catalog, clock, gate
    ):
        fund(Decimal("1000.00"))
        pending = request_service.create(GADGET.product_id, 1, requested_by="alice")

        def _approve(i):
            s = session_factory()
            try:
                return build_request_service(s, catalog, clock, gate).approve(
                    pending.id, approved_by=f"manager_{i}"
                )
            finally:
                s.close()

        results = _run_concurrently(5, _approve)

        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(winners) == 1
        assert winners[0].request_status is RequestStatus.APPROVED
        assert all(
            isinstance(r, InvalidTransitionError) for r in results if isinstance(r, Exception)
        )

        verify = session_factory()
        try:
            selector = LedgerSelector(verify)
            assert selector.snapshot().available_budget == Decimal("900.00")
            assert len(selector.transactions_for_request(pending.id)) == 1
        finally:
            verify.close()

    def test_same_request_cancelled_once(
        self, fund, request_service, session_factory, catalog, clock, gate
    ):
        fund(Decimal("1000.00"))
        pending = request_service.create(GADGET.product_id, 2, requested_by="alice")
        request_service.approve(pending.id, approved_by="manager")

        def _cancel(i):
            s = session_factory()
            try:
                return build_request_service(s, catalog, clock, gate).cancel(
                    pending.id, cancelled_by=f"manager_{i}"
                )
            finally:
                s.close()

        results = _run_concurrently(4, _cancel)
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

        verify = session_factory()
        try:
            selector = LedgerSelector(verify)
            snap = selector.snapshot()
            assert snap.available_budget == Decimal("1000.00")
            assert snap.total_spent == Decimal("0.00")
            assert len(selector.transactions_for_request(pending.id)) == 2
        finally:
            verify.close()


class TestConcurrentEngineCalls:

    def test_mixed_deducts_and_restores_reconcile(self, fund, session_factory, clock, gate):
        fund(Decimal("500.00"))

        def _mutate(i):
            s = session_factory()
            try:
                engine = BalanceEngine(s, clock=clock, gate=gate)
                if i % 2 == 0:
                    return engine.deduct(Decimal("40.00"), reason=f"d{i}", actor=TEST_ACTOR)
                return engine.restore(Decimal("10.00"), reason=f"r{i}", actor=TEST_ACTOR)
            finally:
                s.close()

        results = _run_concurrently(10, _mutate)
        assert not [r for r in results if isinstance(r, Exception)]

        verify = session_factory()
        try:
            selector = LedgerSelector(verify)
            snap = selector.snapshot()
            assert snap.is_reconciled
            assert snap.available_budget >= 0
            # 5 deducts of 40, 5 restores of 10
            assert snap.available_budget == Decimal("350.00")
            assert selector.replay().is_consistent
        finally:
            verify.close()

    def test_gate_timeout_under_contention(self, fund, session_factory, clock):
        fund(Decimal("100.00"))
        gate = BalanceGate(timeout_seconds=0.1)
        inside = threading.Event()
        release = threading.Event()

        def _hold():
            with gate.hold("long_running"):
                inside.set()
                release.wait(5)

        holder = threading.Thread(target=_hold)
        holder.start()
        inside.wait(5)

        s = session_factory()
        try:
            engine = BalanceEngine(s, clock=clock, gate=gate)
            with pytest.raises(LockTimeoutError):
                engine.deduct(Decimal("1.00"), reason="x", actor=TEST_ACTOR)
        finally:
            release.set()
            holder.join(5)
            s.close()

        verify = session_factory()
        try:
            assert LedgerSelector(verify).count_transactions() == 1
        finally:
            verify.close()
